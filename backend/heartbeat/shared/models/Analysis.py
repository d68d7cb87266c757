# heartbeat/shared/models/Analysis.py
"""
Synthèse HTML générée par le LLM. Au plus une par pulse (upsert).
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from heartbeat.core.database import Base


class Analysis(Base):
    __tablename__ = "analyses"

    id         = Column(Integer, primary_key=True, index=True)
    pulse_id   = Column(String, ForeignKey("pulses.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    content    = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    pulse = relationship("Pulse", back_populates="analysis")

    def __repr__(self):
        return f"<Analysis pulse={self.pulse_id} chars={len(self.content or '')}>"
