"""
Schémas Pydantic pour l'envoi des rappels push avant les sessions.
"""

from typing import Any, Dict, List

from pydantic import BaseModel


class PushMessage(BaseModel):
    """Message au format du fournisseur push (Expo)."""
    to: str
    title: str
    body: str
    data: Dict[str, Any] = {}
    sound: str = "default"


class ReminderRunResult(BaseModel):
    """Rapport d'une exécution du job de rappels."""
    sessions_count: int = 0
    attempted_count: int = 0
    no_token_count: int = 0
    already_sent_count: int = 0
    duplicate_count: int = 0
    receipts_written: int = 0
    errors: List[str] = []
