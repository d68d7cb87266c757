# heartbeat/modules/analysis/schemas.py
from pydantic import BaseModel, Field
from typing import Optional


class AnalysisOut(BaseModel):
    pulse_id: str
    analysis: str = Field(..., description="Synthèse HTML")
    response_count: int
    is_existing: bool = False       # True → aucun appel fournisseur
    degraded: bool = False
    warning: Optional[str] = None
