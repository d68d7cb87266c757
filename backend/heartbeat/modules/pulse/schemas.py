# heartbeat/modules/pulse/schemas.py
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Union
from datetime import datetime

from heartbeat.shared.enums import PulseStage


# ── Création ───────────────────────────────────────────────

class PulseCreateIn(BaseModel):
    # Liste ou chaîne séparée par virgules / retours ligne / espaces
    emails: Union[List[str], str]
    name: Optional[str] = Field(None, max_length=200)
    custom_questions: Optional[List[str]] = None
    owner_id: Optional[int] = None


# ── Lecture ────────────────────────────────────────────────

class PulseOut(BaseModel):
    id: str
    name: Optional[str] = None
    owner_id: int
    created_at: Optional[datetime] = None
    emails: Optional[List[str]] = None
    sent_emails: Optional[List[str]] = None
    pending_emails: Optional[List[str]] = None
    custom_questions: Optional[List[str]] = None
    response_count: int = 0
    has_analysis: bool = False
    analysis_content: Optional[str] = None
    last_checked: Optional[datetime] = None

    degraded: bool = False
    warning: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def _normalize_lists(self):
        # Colonnes JSON nullables ; ligne antérieure à la migration 002 : pending = emails - sent
        self.emails = self.emails or []
        self.custom_questions = self.custom_questions or []
        if self.sent_emails is None:
            self.sent_emails = []
        if self.pending_emails is None:
            self.pending_emails = [e for e in self.emails if e not in self.sent_emails]
        return self


class RecipientStatusOut(BaseModel):
    email: str
    sent: bool
    responded: bool


class PulseStatusOut(BaseModel):
    pulse_id: str
    stage: PulseStage
    recipient_count: int
    sent_count: int
    pending_count: int
    response_count: int
    has_analysis: bool
    recipients: List[RecipientStatusOut]
    degraded: bool = False
    warning: Optional[str] = None


class PulseDeleteOut(BaseModel):
    success: bool = True
    pulse_id: str
    degraded: bool = False
    warning: Optional[str] = None
