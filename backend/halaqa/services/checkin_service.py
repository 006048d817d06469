"""
Service de check-in par QR code.

Flux (un appel = une requête courte et indépendante) :
  1. Vérifier la forme de la requête (champs manquants)
  2. Lire la session
  3. Valider série, fenêtre de check-in et token (validate_checkin, sans effet de bord)
  4. Écrire la présence dans le registre (record_attendance, transactionnel)

check_in() est la seule frontière qui convertit toutes les erreurs en
CheckInResult(ok, message) : aucune exception ne remonte à l'appelant.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from halaqa.models.attendance import Attendance
from halaqa.models.participant import Participant
from halaqa.models.session import HalaqaSession
from halaqa.schemas.checkin import CheckInRequest, CheckInResult
from halaqa.timeutils import to_instant, utcnow

logger = logging.getLogger(__name__)

MISSING_DETAILS_MESSAGE = "Missing check-in details."
SUCCESS_MESSAGE = "Checked in!"
FAILURE_MESSAGE = "Check-in failed. Please try again."

MAX_LEDGER_ATTEMPTS = 2

RequestModel = TypeVar("RequestModel", bound=BaseModel)


class CheckInRejected(ValueError):
    """Refus métier d'un check-in : porte le message affiché au participant."""

    message = "Check-in rejected."

    def __init__(self, message: Optional[str] = None):
        if message:
            self.message = message
        super().__init__(self.message)


class SessionNotFound(CheckInRejected):
    message = "Session not found."


class SessionMismatch(CheckInRejected):
    message = "Session mismatch."


class WindowUnset(CheckInRejected):
    message = "Check-in window is not set."


class NotOpenYet(CheckInRejected):
    message = "Check-in is not open yet."


class CheckInClosed(CheckInRejected):
    message = "Check-in is closed."


class TokenExpired(CheckInRejected):
    message = "This QR code has expired."


class AlreadyCheckedIn(CheckInRejected):
    message = "Already checked in."


def validate_checkin(
    session: Optional[HalaqaSession],
    series_id: str,
    token: str,
    now: Optional[datetime] = None,
) -> None:
    """
    Décide si un check-in est admissible maintenant. Purement évaluatif.

    Ordre des vérifications :
    1. Session inexistante → SessionNotFound
    2. Série différente de celle présentée → SessionMismatch
    3. Fenêtre absente (ou bornes nulles) → WindowUnset
    4. now < ouverture → NotOpenYet ; now > fermeture → CheckInClosed
       (intervalle fermé : les deux bornes exactes sont admises)
    5. Token différent du token effectif (rotating_token, sinon token) → TokenExpired
    """
    if session is None:
        raise SessionNotFound()

    if session.series_id != series_id:
        raise SessionMismatch()

    open_at = to_instant(session.checkin_open_at)
    close_at = to_instant(session.checkin_close_at)
    if open_at is None or close_at is None:
        raise WindowUnset()

    current = to_instant(now) or utcnow()
    if current < open_at:
        raise NotOpenYet()
    if current > close_at:
        raise CheckInClosed()

    valid_token = session.rotating_token if session.rotating_token is not None else session.token
    if not valid_token or valid_token != token:
        raise TokenExpired()


def parse_request(body: Any, model: Type[RequestModel]) -> Optional[RequestModel]:
    """
    Valide un corps JSON brut contre le schéma de requête.
    Corps absent, non-objet ou mal typé → None (traité comme détails manquants).
    """
    if not isinstance(body, dict):
        return None
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        logger.debug("Requête de check-in mal formée : %d erreur(s)", exc.error_count())
        return None


def record_attendance(
    db: Session,
    participant_id: str,
    session_id: str,
    series_id: str,
) -> Attendance:
    """
    Enregistre la présence une seule fois par couple (session, participant).

    Dans une seule transaction :
    - lecture de la présence à la clé "{session_id}_{participant_id}"
    - si elle existe → rollback + AlreadyCheckedIn
    - sinon création de la présence (timestamp serveur) et, dans la même
      unité, experience + 1 et last_seen_at du participant

    Deux transactions concurrentes peuvent toutes deux passer la lecture :
    la seconde échoue alors au commit sur la clé primaire (IntegrityError),
    ce qui est traduit en AlreadyCheckedIn.

    Premier check-in d'un participant inconnu, en parallèle sur deux sessions :
    les deux transactions créent le profil, la seconde échoue sur la clé du
    participant. Le profil existe alors, la transaction est rejouée une fois.
    """
    attendance_id = Attendance.make_id(session_id, participant_id)

    for attempt in range(1, MAX_LEDGER_ATTEMPTS + 1):
        existing = db.get(Attendance, attendance_id)
        if existing is not None:
            db.rollback()
            raise AlreadyCheckedIn()

        attendance = Attendance(
            id=attendance_id,
            participant_id=participant_id,
            session_id=session_id,
            series_id=series_id,
        )
        db.add(attendance)

        # Incrément atomique côté SQL (pas de lecture-modification-écriture en Python)
        result = db.execute(
            update(Participant)
            .where(Participant.id == participant_id)
            .values(
                experience=func.coalesce(Participant.experience, 0) + 1,
                last_seen_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Profil pas encore reflété côté serveur : on le crée avec la première expérience
            db.add(Participant(id=participant_id, experience=1, last_seen_at=utcnow()))

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if db.get(Attendance, attendance_id) is not None:
                raise AlreadyCheckedIn()
            if attempt == MAX_LEDGER_ATTEMPTS or db.get(Participant, participant_id) is None:
                raise
            logger.debug(
                "Profil %s créé par un check-in concurrent, nouvel essai (session %s)",
                participant_id, session_id,
            )
            continue

        logger.info(
            "Check-in enregistré : participant %s, session %s (série %s)",
            participant_id, session_id, series_id,
        )
        return attendance


def check_in(
    db: Session,
    request: Optional[CheckInRequest],
    now: Optional[datetime] = None,
) -> CheckInResult:
    """
    Point d'entrée du check-in : session → validation → registre.

    Toujours un CheckInResult :
    - requête absente ou incomplète → ok=False, "Missing check-in details."
    - refus métier → ok=False + message spécifique
    - erreur d'infrastructure → loguée, ok=False + message générique
    """
    if request is None or not request.is_complete():
        return CheckInResult(ok=False, message=MISSING_DETAILS_MESSAGE)

    try:
        session = db.get(HalaqaSession, request.session_id)
        validate_checkin(session, request.series_id, request.token, now=now)
        record_attendance(db, request.participant_id, request.session_id, request.series_id)
    except CheckInRejected as exc:
        logger.debug(
            "Check-in refusé (%s) : participant %s, session %s",
            type(exc).__name__, request.participant_id, request.session_id,
        )
        return CheckInResult(ok=False, message=exc.message)
    except Exception:
        logger.error(
            "Échec du check-in : participant %s, session %s",
            request.participant_id, request.session_id, exc_info=True,
        )
        return CheckInResult(ok=False, message=FAILURE_MESSAGE)

    return CheckInResult(ok=True, message=SUCCESS_MESSAGE)
