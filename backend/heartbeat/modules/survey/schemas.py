# heartbeat/modules/survey/schemas.py
from pydantic import AliasChoices, BaseModel, Field
from typing import Optional, List
from datetime import datetime


# ── Soumission ─────────────────────────────────────────────

class SurveyResponseIn(BaseModel):
    """
    response : texte libre (question par défaut)
    answers  : une réponse par question personnalisée, dans l'ordre
    Les clés camelCase des anciens clients sont acceptées.
    """
    pulse_id: Optional[str] = Field(None, validation_alias=AliasChoices("pulse_id", "pulseId"))
    respondent_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("respondent_id", "respondentId")
    )
    response: Optional[str] = Field(None, max_length=10000)
    answers: Optional[List[str]] = None


class SurveyResponseOut(BaseModel):
    success: bool = True
    pulse_id: str
    response_count: int
    degraded: bool = False
    warning: Optional[str] = None


# ── Lecture ────────────────────────────────────────────────

class ResponseItemOut(BaseModel):
    response: str
    timestamp: Optional[datetime] = None


class ResponseListOut(BaseModel):
    pulse_id: str
    response_count: int
    responses: List[ResponseItemOut]
    degraded: bool = False
    warning: Optional[str] = None
