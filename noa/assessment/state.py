# noa/assessment/state.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from noa.assessment.stages import AssessmentStep, InvestigationPhase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ComplaintDetail:
    location: Optional[str] = None
    when: Optional[str] = None
    how: Optional[str] = None
    associated: Optional[str] = None
    improves: Optional[str] = None
    worsens: Optional[str] = None

    def next_field(self) -> Optional[str]:
        """
        Name of the next drill-down slot to ask about, or None when the
        complaint is fully described. "factors" is a single slot: one
        answer fills improves, worsens or both.
        """
        for name in ("location", "when", "how", "associated"):
            if getattr(self, name) is None:
                return name
        if self.improves is None and self.worsens is None:
            return "factors"
        return None

    @property
    def is_complete(self) -> bool:
        return self.next_field() is None


@dataclass
class InvestigationState:
    presenting_self: Optional[str] = None
    complaints_list: List[str] = field(default_factory=list)
    collecting_complaints: bool = False
    selecting_main_complaint: bool = False
    main_complaint: Optional[str] = None
    current_complaint_index: int = 0
    complaint_details: Dict[str, ComplaintDetail] = field(default_factory=dict)

    @property
    def phase(self) -> InvestigationPhase:
        if self.presenting_self is None:
            return InvestigationPhase.PRESENTATION
        if self.collecting_complaints:
            return InvestigationPhase.COMPLAINT_COLLECTION
        if self.selecting_main_complaint:
            return InvestigationPhase.MAIN_COMPLAINT_SELECTION
        return InvestigationPhase.COMPLAINT_DETAILS

    def detail_for(self, complaint: str) -> ComplaintDetail:
        if complaint not in self.complaint_details:
            self.complaint_details[complaint] = ComplaintDetail()
        return self.complaint_details[complaint]


@dataclass
class InterviewSession:
    """
    Live, per-user record of IMRE interview progress.

    Owned by SessionStore and mutated in place by AssessmentStateMachine.
    """

    user_id: str
    step: AssessmentStep = AssessmentStep.INVESTIGATION
    investigation: InvestigationState = field(default_factory=InvestigationState)
    methodology: str = ""
    result: str = ""
    evolution: str = ""
    patient_name: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    last_update: datetime = field(default_factory=utcnow)

    def touch(self) -> None:
        self.last_update = utcnow()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["step"] = self.step.value
        data["started_at"] = self.started_at.isoformat()
        data["last_update"] = self.last_update.isoformat()
        data["investigation"]["phase"] = self.investigation.phase.value
        return data
