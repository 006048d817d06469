"""
Schémas Pydantic pour le check-in par QR code.
Endpoints : POST /api/checkin, POST /api/checkin/scan

Les champs JSON suivent le contrat de l'app mobile (camelCase) ;
le snake_case est aussi accepté.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CheckInRequest(BaseModel):
    """
    Demande de check-in.
    Tous les champs sont optionnels ici : un champ manquant donne un résultat
    ok=False ("Missing check-in details.") et non une erreur 422.
    """

    participant_id: Optional[str] = None
    session_id: Optional[str] = None
    series_id: Optional[str] = None
    token: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def is_complete(self) -> bool:
        return all([self.participant_id, self.session_id, self.series_id, self.token])


class ScanRequest(BaseModel):
    """Contenu brut d'un QR code scanné, à décoder côté serveur."""

    participant_id: Optional[str] = None
    payload: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionPayload(BaseModel):
    """Contenu décodé d'un QR code de session."""

    series_id: str
    session_id: str
    token: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckInResult(BaseModel):
    """Résultat uniforme renvoyé à l'appelant : jamais d'exception brute."""

    ok: bool
    message: str
