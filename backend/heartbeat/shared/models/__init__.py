# heartbeat/shared/models/__init__.py
"""
Point d'entrée unique pour tous les modèles SQLAlchemy.

TOUJOURS importer les modèles depuis ce fichier :
  from heartbeat.shared.models import Pulse, Response, Analysis

→ Garantit que tous les modèles sont enregistrés dans Base.metadata
  avant la création des tables (Alembic, create_all).
"""

from heartbeat.shared.models.Pulse    import Pulse
from heartbeat.shared.models.Response import Response
from heartbeat.shared.models.Analysis import Analysis

__all__ = [
    "Pulse",
    "Response",
    "Analysis",
]
