# noa/assessment/schema.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


DEFAULT_METHODOLOGY = "Aplicação da Arte da Entrevista Clínica (AEC) com protocolo IMRE."
DEFAULT_RESULT = "Avaliação clínica inicial concluída com sucesso."
DEFAULT_EVOLUTION = "Plano de cuidado personalizado estabelecido."

DEFAULT_RECOMMENDATIONS = [
    "Continuar acompanhamento clínico regular",
    "Seguir protocolo de tratamento estabelecido",
    "Manter comunicação com equipe médica",
    "Realizar avaliações periódicas conforme metodologia definida",
    "Monitoramento dos objetivos terapêuticos estabelecidos",
]

DEFAULT_SCORES = {
    "clinical_score": 75,
    "treatment_adherence": 80,
    "symptom_improvement": 70,
    "quality_of_life": 85,
}


class ReportSections(BaseModel):
    """
    The four IMRE sections plus recommendations and scores, as handed to
    the report service.
    """

    investigation: str = Field(..., description="Investigation (I) narrative")
    methodology: str = Field(DEFAULT_METHODOLOGY, description="Methodology (M)")
    result: str = Field(DEFAULT_RESULT, description="Result (R)")
    evolution: str = Field(DEFAULT_EVOLUTION, description="Evolution (E)")
    recommendations: List[str] = Field(default_factory=lambda: list(DEFAULT_RECOMMENDATIONS))
    scores: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_SCORES))


class Report(BaseModel):
    id: str
    patient_id: str
    patient_name: str
    sections: ReportSections
    narrative: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {
        "extra": "ignore",
    }
