# heartbeat/shared/enums.py
"""
Toutes les énumérations du projet Heartbeat.

Source unique de vérité pour les statuts.
Importé par les schemas et les services.
"""

from enum import Enum


class PulseStage(str, Enum):
    CREATED            = "created"             # Rien d'envoyé
    SENDING            = "sending"             # Envoi partiel, pending non vide
    AWAITING_RESPONSES = "awaiting_responses"  # Tout envoyé, réponses manquantes
    READY_FOR_ANALYSIS = "ready_for_analysis"  # response_count == nb destinataires
    ANALYZED           = "analyzed"            # Réponses brutes supprimées
    DELETED            = "deleted"             # Terminal, jamais stocké


class DeliveryStatus(str, Enum):
    SENT      = "sent"
    FAILED    = "failed"     # Compté comme envoyé dans la partition (pas de renvoi)
    MOCKED    = "mocked"     # Pas de clé Resend : email loggé seulement
    TIMED_OUT = "timed_out"  # Budget dépassé, peut aboutir en arrière-plan
