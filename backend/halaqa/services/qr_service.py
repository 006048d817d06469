"""
Décodage du contenu des QR codes de session.

Formats acceptés :
- objet JSON {"seriesId": ..., "sessionId": ..., "token": ...}
- chaîne "seriesId|sessionId|token" (segments supplémentaires ignorés)
"""

import json
from typing import Optional

from halaqa.schemas.checkin import SessionPayload

INVALID_PAYLOAD_MESSAGE = "That code looks different. Please try again."


def parse_session_payload(raw: Optional[str]) -> Optional[SessionPayload]:
    """Retourne le SessionPayload décodé, ou None si le contenu est vide ou malformé."""
    if not raw:
        return None

    trimmed = raw.strip()
    if not trimmed:
        return None

    if trimmed.startswith("{"):
        try:
            parsed = json.loads(trimmed)
        except ValueError:
            return None
        if not isinstance(parsed, dict):
            return None
        series_id = parsed.get("seriesId")
        session_id = parsed.get("sessionId")
        token = parsed.get("token")
        if all(isinstance(v, str) and v for v in (series_id, session_id, token)):
            return SessionPayload(series_id=series_id, session_id=session_id, token=token)
        return None

    parts = trimmed.split("|")
    if len(parts) >= 3:
        series_id, session_id, token = parts[:3]
        if series_id and session_id and token:
            return SessionPayload(series_id=series_id, session_id=session_id, token=token)

    return None
