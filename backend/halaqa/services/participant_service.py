"""
Service métier du profil participant (miroir serveur du profil de l'appareil).

Toutes les écritures sont des patchs explicites champ par champ : un champ
non fourni n'est jamais écrasé, et le participant est créé s'il n'existe pas.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from halaqa.models.participant import Participant, ParticipantSeries
from halaqa.models.series import Series
from halaqa.schemas.participant import NotificationStatus, ParticipantPatch, ParticipantResponse
from halaqa.services.push_service import is_push_token
from halaqa.timeutils import utcnow

logger = logging.getLogger(__name__)


def _get_or_create(db: Session, participant_id: str) -> Participant:
    participant = db.get(Participant, participant_id)
    if participant is None:
        participant = Participant(id=participant_id, notifications_enabled=False)
        db.add(participant)
    return participant


def upsert_participant(db: Session, participant_id: str, data: ParticipantPatch) -> ParticipantResponse:
    """
    Applique un patch partiel au profil.
    Seuls les champs explicitement envoyés sont modifiés ; last_seen_at est rafraîchi.
    """
    participant = _get_or_create(db, participant_id)

    for field_name, value in data.model_dump(exclude_unset=True).items():
        setattr(participant, field_name, value)
    participant.last_seen_at = utcnow()

    db.commit()
    db.refresh(participant)

    logger.info("Profil participant %s mis à jour", participant_id)
    return ParticipantResponse.model_validate(participant)


def get_notification_status(db: Session, participant_id: str) -> NotificationStatus:
    participant = db.get(Participant, participant_id)
    return NotificationStatus(
        participant_id=participant_id,
        notifications_enabled=bool(participant.notifications_enabled) if participant else False,
    )


def enable_notifications(db: Session, participant_id: str, push_token: str) -> NotificationStatus:
    """Active les rappels avec le token push de l'appareil. ValueError si le token est malformé."""
    if not is_push_token(push_token):
        raise ValueError("Invalid push token.")

    participant = db.get(Participant, participant_id)
    if participant is None:
        raise ValueError(f"Participant {participant_id} not found.")

    participant.push_token = push_token.strip()
    participant.notifications_enabled = True
    participant.last_seen_at = utcnow()
    db.commit()

    logger.info("Notifications activées pour le participant %s", participant_id)
    return NotificationStatus(participant_id=participant_id, notifications_enabled=True)


def disable_notifications(db: Session, participant_id: str) -> NotificationStatus:
    """Désactive les rappels et efface le token push."""
    participant = db.get(Participant, participant_id)
    if participant is None:
        raise ValueError(f"Participant {participant_id} not found.")

    participant.push_token = None
    participant.notifications_enabled = False
    participant.last_seen_at = utcnow()
    db.commit()

    logger.info("Notifications désactivées pour le participant %s", participant_id)
    return NotificationStatus(participant_id=participant_id, notifications_enabled=False)


def subscribe_to_series(db: Session, participant_id: str, series_id: str) -> bool:
    """
    Abonne le participant à une série (ciblage des rappels). Idempotent.
    Retourne True si l'abonnement vient d'être créé, False s'il existait déjà.
    """
    if db.get(Series, series_id) is None:
        raise ValueError(f"Series {series_id} not found.")

    participant = _get_or_create(db, participant_id)
    participant.last_seen_at = utcnow()

    created = db.get(ParticipantSeries, (participant_id, series_id)) is None
    if created:
        db.add(ParticipantSeries(participant_id=participant_id, series_id=series_id))

    try:
        db.commit()
    except IntegrityError:
        # Abonnement concurrent identique : déjà présent
        db.rollback()
        created = False

    if created:
        logger.info("Participant %s abonné à la série %s", participant_id, series_id)
    return created
