# heartbeat/shared/models/Pulse.py
"""
Pulse — une campagne de survey envoyée à une liste fixe de destinataires.

Partition d'envoi : sent_emails ∪ pending_emails = emails, intersection vide.
Seul le service dispatch modifie la partition.
"""
from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from heartbeat.core.database import Base


class Pulse(Base):
    __tablename__ = "pulses"

    id         = Column(String, primary_key=True, index=True)   # pulse_<epoch ms>_<hex>
    name       = Column(String, nullable=True)
    owner_id   = Column("user_id", Integer, nullable=False, default=1, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    emails           = Column(JSON, nullable=False, default=list)   # destinataires, ordre conservé
    sent_emails      = Column(JSON, nullable=True)                  # migration 002
    pending_emails   = Column(JSON, nullable=True)                  # migration 002
    custom_questions = Column(JSON, nullable=True)

    # Re-dérivé en comptant les réponses, jamais incrémenté
    response_count   = Column(Integer, nullable=False, default=0)

    has_analysis     = Column(Boolean, nullable=False, default=False)
    analysis_content = Column(Text, nullable=True)                  # HTML

    last_checked = Column(DateTime(timezone=True), nullable=True)

    responses = relationship("Response", back_populates="pulse", passive_deletes=True)
    analysis  = relationship("Analysis", back_populates="pulse", uselist=False, passive_deletes=True)

    def __repr__(self):
        return f"<Pulse id={self.id} responses={self.response_count}/{len(self.emails or [])}>"
