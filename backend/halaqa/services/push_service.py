"""
Client du fournisseur de notifications push (Expo Push API).

Le dispatcher de rappels dépend du protocole PushProvider, pas de cette
implémentation : les tests lui passent un double.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from halaqa.config import settings
from halaqa.schemas.reminder import PushMessage

logger = logging.getLogger(__name__)

_PUSH_TOKEN_RE = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[[^\]]+\]$")


class PushProviderError(Exception):
    """Échec d'un appel au fournisseur (réseau, HTTP, réponse illisible)."""


class PushProvider(Protocol):
    """Interface attendue par le dispatcher : un appel par lot de messages."""

    chunk_size: int

    def send(self, messages: Sequence[PushMessage]) -> List[Dict[str, Any]]: ...


def is_push_token(token: Optional[str]) -> bool:
    """Vrai si le token a la forme ExponentPushToken[...] ou ExpoPushToken[...]."""
    return bool(token) and bool(_PUSH_TOKEN_RE.match(token.strip()))


class ExpoPushClient:
    """
    Envoi synchrone vers l'API Expo.

    send() retourne un ticket par message ({"status": "ok" | "error", ...}).
    Lève PushProviderError si la requête entière échoue.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        access_token: Optional[str] = None,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or settings.EXPO_PUSH_URL
        self.access_token = access_token if access_token is not None else settings.EXPO_ACCESS_TOKEN
        self.chunk_size = chunk_size or settings.PUSH_CHUNK_SIZE
        self.timeout = timeout or settings.PUSH_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def send(self, messages: Sequence[PushMessage]) -> List[Dict[str, Any]]:
        if not messages:
            return []
        if len(messages) > self.chunk_size:
            raise PushProviderError(
                f"Lot trop grand : {len(messages)} messages (maximum {self.chunk_size})."
            )

        payload = [m.model_dump() for m in messages]
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(self.url, json=payload, headers=self._headers())
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PushProviderError(f"Appel Expo en échec : {exc}") from exc

        if not isinstance(body, dict):
            raise PushProviderError("Réponse Expo illisible.")
        if body.get("errors"):
            raise PushProviderError(f"Requête refusée par Expo : {body['errors']}")

        tickets = body.get("data")
        if not isinstance(tickets, list):
            raise PushProviderError("Réponse Expo sans tickets.")

        logger.debug("Expo : %d messages envoyés, %d tickets reçus", len(messages), len(tickets))
        return tickets


def get_push_client() -> ExpoPushClient:
    """Dépendance FastAPI : fournit le client push configuré."""
    return ExpoPushClient()
