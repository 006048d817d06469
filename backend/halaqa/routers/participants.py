"""
Router pour les participants : profil, notifications, abonnements,
tableau de bord, récompenses et évolution d'avatar.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from halaqa.database import get_db
from halaqa.schemas.participant import (
    NotificationEnable,
    NotificationStatus,
    ParticipantPatch,
    ParticipantResponse,
)
from halaqa.schemas.rewards import EvolutionResponse, RewardClaimRequest, RewardClaimResponse, RewardStatus
from halaqa.schemas.stats import ParticipantDashboard
from halaqa.services import participant_service, reward_service, stats_service

router = APIRouter(prefix="/api/v1/participants", tags=["Participants"])


def _raise_http(e: ValueError, default_status: int = 400):
    msg = str(e)
    if "not found" in msg:
        raise HTTPException(status_code=404, detail=msg)
    raise HTTPException(status_code=default_status, detail=msg)


@router.put("/{participant_id}", response_model=ParticipantResponse, summary="Créer ou modifier un profil")
def upsert_participant(participant_id: str, data: ParticipantPatch, db: Session = Depends(get_db)):
    """
    Met à jour le profil participant champ par champ.
    Seuls les champs fournis sont modifiés ; le profil est créé s'il n'existe pas.
    """
    return participant_service.upsert_participant(db, participant_id, data)


@router.get("/{participant_id}/notifications", response_model=NotificationStatus,
            summary="Statut des rappels")
def get_notifications(participant_id: str, db: Session = Depends(get_db)):
    return participant_service.get_notification_status(db, participant_id)


@router.post("/{participant_id}/notifications", response_model=NotificationStatus,
             summary="Activer les rappels")
def enable_notifications(participant_id: str, data: NotificationEnable, db: Session = Depends(get_db)):
    """Enregistre le token push de l'appareil et active les rappels."""
    try:
        return participant_service.enable_notifications(db, participant_id, data.push_token)
    except ValueError as e:
        _raise_http(e)


@router.delete("/{participant_id}/notifications", response_model=NotificationStatus,
               summary="Désactiver les rappels")
def disable_notifications(participant_id: str, db: Session = Depends(get_db)):
    try:
        return participant_service.disable_notifications(db, participant_id)
    except ValueError as e:
        _raise_http(e)


@router.post("/{participant_id}/series/{series_id}", summary="S'abonner à une série")
def subscribe_to_series(participant_id: str, series_id: str, db: Session = Depends(get_db)):
    """Abonnement idempotent : un second appel ne crée rien."""
    try:
        created = participant_service.subscribe_to_series(db, participant_id, series_id)
    except ValueError as e:
        _raise_http(e)
    return {"participant_id": participant_id, "series_id": series_id, "created": created}


@router.get("/{participant_id}/stats", response_model=ParticipantDashboard,
            summary="Tableau de bord du participant")
def get_dashboard(participant_id: str, db: Session = Depends(get_db)):
    """
    Retourne totaux, streaks (série active), résumés par série avec récompenses,
    niveau d'avatar et badges. Recalculé depuis le registre à chaque appel.
    """
    try:
        return stats_service.get_participant_dashboard(db, participant_id)
    except ValueError as e:
        _raise_http(e)


@router.get("/{participant_id}/series/{series_id}/rewards", response_model=RewardStatus,
            summary="État des récompenses d'une série")
def get_reward_status(participant_id: str, series_id: str, db: Session = Depends(get_db)):
    try:
        status = reward_service.get_series_reward_status(db, participant_id, series_id)
    except ValueError as e:
        _raise_http(e)
    if status is None:
        raise HTTPException(status_code=404, detail="This series has no rewards.")
    return status


@router.post("/{participant_id}/series/{series_id}/rewards/claim", response_model=RewardClaimResponse,
             summary="Réclamer une récompense")
def claim_reward(
    participant_id: str,
    series_id: str,
    data: RewardClaimRequest,
    db: Session = Depends(get_db),
):
    """
    Réclame un seuil atteint. Idempotent : réclamer deux fois le même seuil
    laisse l'ensemble réclamé inchangé.

    Retourne 404 si la série ou le participant est introuvable, 409 si le seuil
    n'existe pas ou n'est pas encore atteint.
    """
    try:
        return reward_service.claim_series_reward(db, participant_id, series_id, data.threshold)
    except ValueError as e:
        _raise_http(e, default_status=409)


@router.post("/{participant_id}/avatar/evolve", response_model=EvolutionResponse,
             summary="Faire évoluer l'avatar")
def evolve_avatar(participant_id: str, db: Session = Depends(get_db)):
    """Avance l'avatar courant d'une seule forme si de l'expérience a été gagnée depuis la dernière évolution."""
    try:
        return reward_service.evolve_avatar(db, participant_id)
    except ValueError as e:
        _raise_http(e)
