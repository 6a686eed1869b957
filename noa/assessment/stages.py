# noa/assessment/stages.py
from enum import Enum


class AssessmentStep(str, Enum):
    INVESTIGATION = "INVESTIGATION"
    METHODOLOGY = "METHODOLOGY"
    RESULT = "RESULT"
    EVOLUTION = "EVOLUTION"
    COMPLETED = "COMPLETED"


class InvestigationPhase(str, Enum):
    PRESENTATION = "presentation"
    COMPLAINT_COLLECTION = "complaint_collection"
    MAIN_COMPLAINT_SELECTION = "main_complaint_selection"
    COMPLAINT_DETAILS = "complaint_details"


# Drill-down order for each complaint. "factors" fills improves/worsens.
DETAIL_FIELDS = ("location", "when", "how", "associated", "factors")
