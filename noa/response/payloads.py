# noa/response/payloads.py
"""
Typed payloads handed to the ResponseSynthesizer, one variant per clinical
intent. Platform API responses are validated into these models; field names
accept the API's camelCase spelling.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from noa.nlp.intents import Domain, IntentType


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StatusPayload(_Payload):
    kind: Literal["status"] = "status"
    status: Optional[str] = None
    updated_at: Optional[str] = Field(None, alias="updatedAt")
    notes: Optional[str] = None


class TrainingModule(_Payload):
    title: str
    focus: Optional[str] = None


class TrainingPayload(_Payload):
    kind: Literal["training"] = "training"
    modules: List[TrainingModule] = Field(default_factory=list)


class Simulation(_Payload):
    specialty: str
    status: Optional[str] = None


class SimulationPayload(_Payload):
    kind: Literal["simulation"] = "simulation"
    simulations: List[Simulation] = Field(default_factory=list)


class KnowledgeEntry(_Payload):
    title: str
    category: Optional[str] = None


class KnowledgePayload(_Payload):
    kind: Literal["knowledge"] = "knowledge"
    entries: List[KnowledgeEntry] = Field(default_factory=list)


class ImrePayload(_Payload):
    kind: Literal["imre"] = "imre"
    insight: str = "Aplicando escuta clínica e correlações IMRE."
    domain: Domain = Domain.GENERAL


Payload = Annotated[
    Union[StatusPayload, TrainingPayload, SimulationPayload, KnowledgePayload, ImrePayload],
    Field(discriminator="kind"),
]

PAYLOAD_FOR_INTENT: Dict[IntentType, Type[_Payload]] = {
    IntentType.STATUS: StatusPayload,
    IntentType.TRAINING_CONTEXT: TrainingPayload,
    IntentType.SIMULATION: SimulationPayload,
    IntentType.KNOWLEDGE: KnowledgePayload,
    IntentType.IMRE_ANALYSIS: ImrePayload,
}


def payload_for(intent_type: IntentType, data: Optional[Dict[str, Any]]):
    """
    Validate raw API data into the payload variant for `intent_type`.

    Returns None for empty data or for intents that carry no payload.
    The API may wrap its body in a {"data": ...} envelope. A body that is
    not an object fails validation.
    """
    model = PAYLOAD_FOR_INTENT.get(intent_type)
    if model is None or not data:
        return None
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        data = data["data"]
    return model.model_validate(data)
