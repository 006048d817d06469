"""
Router pour le check-in par QR code.
Répond toujours 200 avec {ok, message} : les refus font partie du contrat,
y compris un corps absent ou mal formé (pas de 422).
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from halaqa.database import get_db
from halaqa.schemas.checkin import CheckInRequest, CheckInResult, ScanRequest
from halaqa.services import checkin_service, participant_service, qr_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkin", tags=["Check-in"])


@router.post("", response_model=CheckInResult, summary="Check-in à une session")
def check_in(body: Any = Body(None), db: Session = Depends(get_db)):
    """
    Enregistre la présence d'un participant à une session.

    Corps : {participantId, sessionId, seriesId, token} (snake_case accepté).

    - Corps absent, mal formé ou champs manquants → ok=false, "Missing check-in details."
    - Session inconnue, série différente, fenêtre fermée, QR expiré,
      déjà enregistré → ok=false avec un message spécifique
    - Erreur technique → ok=false, message générique

    Un nouvel essai après un timeout est sans risque : au plus une présence
    par couple (session, participant).
    """
    request = checkin_service.parse_request(body, CheckInRequest)
    return checkin_service.check_in(db, request)


@router.post("/scan", response_model=CheckInResult, summary="Check-in depuis le contenu brut d'un QR code")
def scan(body: Any = Body(None), db: Session = Depends(get_db)):
    """
    Corps : {participantId, payload}.
    Décode le QR code (JSON ou "série|session|token") puis effectue le check-in.
    En cas de succès, abonne le participant à la série (rappels) sans bloquer la réponse.
    """
    data = checkin_service.parse_request(body, ScanRequest)
    if data is None:
        return CheckInResult(ok=False, message=checkin_service.MISSING_DETAILS_MESSAGE)

    payload = qr_service.parse_session_payload(data.payload)
    if payload is None:
        return CheckInResult(ok=False, message=qr_service.INVALID_PAYLOAD_MESSAGE)

    result = checkin_service.check_in(
        db,
        CheckInRequest(
            participant_id=data.participant_id,
            session_id=payload.session_id,
            series_id=payload.series_id,
            token=payload.token,
        ),
    )

    if result.ok:
        try:
            participant_service.subscribe_to_series(db, data.participant_id, payload.series_id)
        except Exception as exc:
            db.rollback()
            logger.warning(
                "Abonnement à la série %s en échec (participant %s) : %s",
                payload.series_id, data.participant_id, exc,
            )
    return result
