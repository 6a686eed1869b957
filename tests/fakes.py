"""In-memory collaborator fakes shared by the test suite."""
from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional

from noa.assessment.schema import Report, ReportSections
from noa.collaborators import AssistantReply, Document


class FakeReportService:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.reports: Dict[str, List[Report]] = {}
        self.fail = False
        self._ids = itertools.count(1)

    async def generate_report(self, patient_id: str, patient_name: str, sections: ReportSections) -> Report:
        self.calls.append({"patient_id": patient_id, "patient_name": patient_name, "sections": sections})
        if self.fail:
            raise RuntimeError("report backend unavailable")
        report = Report(
            id=f"report-{next(self._ids)}",
            patient_id=patient_id,
            patient_name=patient_name,
            sections=sections,
        )
        self.reports.setdefault(patient_id, []).insert(0, report)
        return report

    async def list_reports(self, patient_id: str) -> List[Report]:
        if self.fail:
            raise RuntimeError("report backend unavailable")
        return list(self.reports.get(patient_id, []))

    @property
    def successful(self) -> int:
        return sum(len(v) for v in self.reports.values())


class FakeRecordStore:
    def __init__(self):
        self.interactions: List[Dict[str, Any]] = []
        self.assessments: Dict[str, Dict[str, Any]] = {}
        self.notifications: List[Dict[str, Any]] = []
        self.fail = False

    async def record_interaction(self, patient_id: str, snapshot: Dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("database down")
        self.interactions.append({"patient_id": patient_id, **snapshot})

    async def upsert_assessment_record(self, patient_id: str, status: str, data: Dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("database down")
        self.assessments[patient_id] = {"status": status, "data": data}

    async def request_notification(
        self, patient_id: str, message: str, metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        if self.fail:
            raise RuntimeError("database down")
        self.notifications.append({"patient_id": patient_id, "message": message, "metadata": metadata})
        return f"notif-{len(self.notifications)}"


class FakeKnowledgeSearch:
    def __init__(self, documents: Optional[List[Document]] = None, linked_ids=()):
        self.documents = documents or []
        self.linked_ids = set(linked_ids)
        self.queries: List[Dict[str, Any]] = []

    async def search(self, query: str, linked_only: bool = False, limit: int = 5) -> List[Document]:
        self.queries.append({"query": query, "linked_only": linked_only, "limit": limit})
        docs = [d for d in self.documents if not linked_only or d.id in self.linked_ids]
        return docs[:limit]


class FakeAssistant:
    def __init__(self, content: str = "Resposta do assistente.", source: str = "assistant"):
        self.content = content
        self.source = source
        self.prompts: List[str] = []
        self.fail = False

    async def send_message(self, prompt: str, user_id=None, route_context=None) -> AssistantReply:
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("assistant offline")
        return AssistantReply(content=self.content, source=self.source, metadata={"model": "fake"})


class FakePlatform:
    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[Any] = []
        self.fail = False

    async def _get(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise RuntimeError("platform unreachable")
        return self.responses.get(name, {})

    async def get_platform_status(self):
        return await self._get("status")

    async def get_training_context(self):
        return await self._get("training")

    async def get_patient_simulations(self):
        return await self._get("simulations")

    async def get_knowledge_library(self, query=None):
        return await self._get("knowledge", query)
