# heartbeat/modules/dispatch/schemas.py
from pydantic import BaseModel
from typing import Optional, List, Union

from heartbeat.shared.enums import DeliveryStatus


# ── Envoi unitaire ─────────────────────────────────────────

class DispatchResultOut(BaseModel):
    pulse_id: str
    sent: Optional[str] = None          # None → plus rien en pending
    remaining_count: int
    survey_link: Optional[str] = None
    status: Optional[DeliveryStatus] = None
    message_id: Optional[str] = None
    success: bool
    warning: Optional[str] = None
    degraded: bool = False


# ── Batch ──────────────────────────────────────────────────

class DispatchBatchIn(BaseModel):
    emails: Union[List[str], str] = []


class DeliveryOut(BaseModel):
    email: str
    survey_link: str
    status: DeliveryStatus
    message_id: Optional[str] = None
    error: Optional[str] = None


class DispatchReportOut(BaseModel):
    pulse_id: str
    success: bool
    sent_count: int
    results: List[DeliveryOut]
    warning: Optional[str] = None
    degraded: bool = False
