# noa/collaborators.py
"""
Contracts for the external collaborators the dialogue engine consumes.

Concrete implementations live in noa.services, noa.rag and noa.llm; tests
plug in fakes with the same shape.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol

if TYPE_CHECKING:
    from noa.assessment.schema import Report, ReportSections


@dataclass
class Document:
    id: str
    title: str
    summary: str
    category: str
    tags: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    relevance_score: float = 0.0  # higher is more relevant


@dataclass
class AssistantReply:
    content: str
    source: str = "assistant"  # "assistant" or "fallback"
    metadata: Dict[str, Any] = field(default_factory=dict)


class KnowledgeSearch(Protocol):
    async def search(
        self,
        query: str,
        linked_only: bool = False,
        limit: int = 5,
    ) -> List[Document]:
        ...


class ReportService(Protocol):
    async def generate_report(
        self,
        patient_id: str,
        patient_name: str,
        sections: ReportSections,
    ) -> Report:
        ...

    async def list_reports(self, patient_id: str) -> List[Report]:
        ...


class AssistantService(Protocol):
    async def send_message(
        self,
        prompt: str,
        user_id: Optional[str] = None,
        route_context: Optional[str] = None,
    ) -> AssistantReply:
        ...


class PatientRecordStore(Protocol):
    async def record_interaction(self, patient_id: str, snapshot: Dict[str, Any]) -> None:
        ...

    async def upsert_assessment_record(
        self,
        patient_id: str,
        status: str,
        data: Dict[str, Any],
    ) -> None:
        ...

    async def request_notification(
        self,
        patient_id: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        ...


class PlatformDataSource(Protocol):
    async def get_platform_status(self) -> Dict[str, Any]:
        ...

    async def get_training_context(self) -> Dict[str, Any]:
        ...

    async def get_patient_simulations(self) -> Dict[str, Any]:
        ...

    async def get_knowledge_library(self, query: Optional[str] = None) -> Dict[str, Any]:
        ...
