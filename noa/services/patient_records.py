# noa/services/patient_records.py
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from noa.models import AssessmentRecord, InteractionRecord, NotificationRequest
from noa.services.database import db_session
from noa.services.reports import _ensure_patient


class SqlPatientRecordStore:
    """
    Patient-record collaborator: interaction snapshots, the per-patient
    assessment record and notification requests for the care team.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    async def record_interaction(self, patient_id: str, snapshot: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._record_interaction, patient_id, snapshot)

    async def upsert_assessment_record(
        self,
        patient_id: str,
        status: str,
        data: Dict[str, Any],
    ) -> None:
        await asyncio.to_thread(self._upsert_assessment_record, patient_id, status, data)

    async def request_notification(
        self,
        patient_id: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        return await asyncio.to_thread(self._request_notification, patient_id, message, metadata or {})

    def get_assessment_record(self, patient_id: str) -> Optional[Dict[str, Any]]:
        with db_session(self.session_factory) as session:
            row = session.get(AssessmentRecord, patient_id)
            if row is None:
                return None
            return {"patient_id": row.patient_id, "status": row.status, "data": dict(row.data)}

    def list_interactions(self, patient_id: str) -> List[Dict[str, Any]]:
        with db_session(self.session_factory) as session:
            rows = session.scalars(
                select(InteractionRecord)
                .where(InteractionRecord.patient_id == patient_id)
                .order_by(InteractionRecord.id.asc())
            ).all()
            return [dict(row.snapshot) for row in rows]

    # ------------------------------------------------------------------

    def _record_interaction(self, patient_id: str, snapshot: Dict[str, Any]) -> None:
        with db_session(self.session_factory) as session:
            _ensure_patient(session, patient_id, None)
            session.add(InteractionRecord(patient_id=patient_id, snapshot=snapshot))

    def _upsert_assessment_record(self, patient_id: str, status: str, data: Dict[str, Any]) -> None:
        with db_session(self.session_factory) as session:
            _ensure_patient(session, patient_id, data.get("patient_name"))
            existing = session.get(AssessmentRecord, patient_id)
            if existing is None:
                session.add(AssessmentRecord(patient_id=patient_id, status=status, data=data))
            else:
                existing.status = status
                existing.data = data
        logger.debug("Assessment record for {} is now {}", patient_id, status)

    def _request_notification(self, patient_id: str, message: str, metadata: Dict[str, Any]) -> str:
        with db_session(self.session_factory) as session:
            _ensure_patient(session, patient_id, None)
            row = NotificationRequest(patient_id=patient_id, message=message, details=metadata)
            session.add(row)
            session.flush()
            request_id = row.id
        logger.info("Notification request {} created for patient {}", request_id, patient_id)
        return request_id
