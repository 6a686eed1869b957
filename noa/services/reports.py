# noa/services/reports.py
from __future__ import annotations

import asyncio
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from noa.assessment.schema import Report, ReportSections
from noa.llm import LLMClient
from noa.models import ClinicalReport, Patient
from noa.services.database import db_session


def _ensure_patient(session: Session, patient_id: str, display_name: Optional[str]) -> Patient:
    patient = session.get(Patient, patient_id)
    if patient is None:
        patient = Patient(id=patient_id, display_name=display_name)
        session.add(patient)
        session.flush()
    elif display_name and not patient.display_name:
        patient.display_name = display_name
    return patient


def _to_report(row: ClinicalReport) -> Report:
    return Report(
        id=row.id,
        patient_id=row.patient_id,
        patient_name=row.patient_name,
        sections=ReportSections.model_validate(row.sections),
        narrative=row.narrative,
        created_at=row.created_at,
    )


def build_heuristic_narrative(patient_name: str, sections: ReportSections) -> str:
    """
    Plain narrative stitched from the IMRE sections; used when no LLM is
    configured or the LLM call fails.
    """
    lines = [
        f"Relatório clínico de {patient_name}.",
        sections.investigation,
        sections.methodology,
        sections.result,
        sections.evolution,
    ]
    if sections.recommendations:
        lines.append("Recomendações: " + "; ".join(sections.recommendations) + ".")
    return "\n\n".join(line for line in lines if line)


class SqlReportService:
    """
    Report collaborator backed by the clinical_reports table.

    When an LLMClient is given, a narrative is written by the model from the
    IMRE sections; otherwise (or on any LLM error) the heuristic narrative
    is stored.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        llm_client: Optional[LLMClient] = None,
    ):
        self.session_factory = session_factory
        self.llm = llm_client

    async def generate_report(
        self,
        patient_id: str,
        patient_name: str,
        sections: ReportSections,
    ) -> Report:
        narrative = await self._write_narrative(patient_name, sections)
        return await asyncio.to_thread(
            self._store_report, patient_id, patient_name, sections, narrative
        )

    async def list_reports(self, patient_id: str) -> List[Report]:
        return await asyncio.to_thread(self._load_reports, patient_id)

    # ------------------------------------------------------------------

    async def _write_narrative(self, patient_name: str, sections: ReportSections) -> str:
        if self.llm is None:
            return build_heuristic_narrative(patient_name, sections)

        messages = [
            {
                "role": "system",
                "content": (
                    "Você é uma assistente clínica que redige relatórios de avaliação inicial "
                    "no formato IMRE (Investigação, Metodologia, Resultado, Evolução). "
                    "Use apenas as informações fornecidas; não invente dados clínicos."
                ),
            },
            {
                "role": "user",
                "content": (
                    f"Paciente: {patient_name}\n\n"
                    f"{sections.investigation}\n\n{sections.methodology}\n\n"
                    f"{sections.result}\n\n{sections.evolution}\n\n"
                    "Redija um relatório clínico narrativo e conciso com base nessas seções."
                ),
            },
        ]
        try:
            narrative = (await self.llm.chat(messages, temperature=0.2)).strip()
        except Exception as exc:
            logger.warning("LLM narrative failed ({}); using heuristic narrative", exc)
            return build_heuristic_narrative(patient_name, sections)

        return narrative or build_heuristic_narrative(patient_name, sections)

    def _store_report(
        self,
        patient_id: str,
        patient_name: str,
        sections: ReportSections,
        narrative: str,
    ) -> Report:
        with db_session(self.session_factory) as session:
            _ensure_patient(session, patient_id, patient_name)
            row = ClinicalReport(
                patient_id=patient_id,
                patient_name=patient_name,
                sections=sections.model_dump(),
                narrative=narrative,
            )
            session.add(row)
            session.flush()
            report = _to_report(row)

        logger.info("Stored clinical report {} for patient {}", report.id, patient_id)
        return report

    def _load_reports(self, patient_id: str) -> List[Report]:
        with db_session(self.session_factory) as session:
            rows = session.scalars(
                select(ClinicalReport)
                .where(ClinicalReport.patient_id == patient_id)
                .order_by(ClinicalReport.created_at.desc(), ClinicalReport.id.desc())
            ).all()
            return [_to_report(row) for row in rows]
