# heartbeat/shared/models/Response.py
"""
Réponse libre d'un destinataire.

Append-only jusqu'à l'analyse, puis supprimée (anonymat par suppression).
respondent_id = token de survey du destinataire, jamais exposé par l'API.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from heartbeat.core.database import Base


class Response(Base):
    __tablename__ = "responses"

    id            = Column(Integer, primary_key=True, index=True)
    pulse_id      = Column(String, ForeignKey("pulses.id", ondelete="CASCADE"), nullable=False, index=True)
    respondent_id = Column(String, nullable=False, default="anonymous")
    response      = Column(Text, nullable=False)
    timestamp     = Column(DateTime(timezone=True), server_default=func.now())

    pulse = relationship("Pulse", back_populates="responses")

    def __repr__(self):
        return f"<Response id={self.id} pulse={self.pulse_id}>"
