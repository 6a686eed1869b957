# noa/assessment/__init__.py
from .stages import AssessmentStep, InvestigationPhase
from .state import ComplaintDetail, InvestigationState, InterviewSession
from .store import SessionStore
from .schema import Report, ReportSections
from .completion import AssessmentCompleter, build_report_sections
from .machine import AssessmentStateMachine, StepReply

__all__ = [
    "AssessmentStep",
    "InvestigationPhase",
    "ComplaintDetail",
    "InvestigationState",
    "InterviewSession",
    "SessionStore",
    "Report",
    "ReportSections",
    "AssessmentCompleter",
    "build_report_sections",
    "AssessmentStateMachine",
    "StepReply",
]
