"""
Conversion unique des timestamps stockés en instants comparables.

Toutes les lectures (fenêtre de check-in, streaks, récompenses, rappels)
passent par to_instant() au lieu de convertir au cas par cas.
"""

from datetime import datetime, timezone
from typing import Optional


def to_instant(value) -> Optional[datetime]:
    """
    Décode une valeur stockée en datetime UTC aware, ou None.

    Accepte :
    - datetime aware (converti en UTC) ou naive (considéré comme UTC)
    - int/float : millisecondes depuis epoch
    - str : ISO-8601 (suffixe Z accepté)

    Une valeur absente, nulle (0, epoch) ou illisible donne None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        instant = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        instant = instant.astimezone(timezone.utc)
    elif isinstance(value, (int, float)):
        if value <= 0:
            return None
        try:
            instant = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return to_instant(parsed)
    else:
        return None

    if instant.timestamp() <= 0:
        return None
    return instant


def utcnow() -> datetime:
    """Instant courant en UTC (aware)."""
    return datetime.now(timezone.utc)
