"""
Service d'envoi des rappels push avant les sessions (job planifié).

Flux d'une exécution :
  1. Fenêtre [now, now + REMINDER_LOOKAHEAD_HOURS] → sessions qui commencent dedans
  2. Nom de la série (cache propre à l'exécution)
  3. Participants abonnés à la série avec notifications activées
  4. Pour chaque destinataire :
     a. Skip si token push absent ou malformé
     b. Skip si un reçu existe déjà pour (session, série, hash du token)
     c. Skip si (série, token) déjà mis en file pendant cette exécution
  5. Message localisé dans le fuseau du participant
  6. Envoi par lots (taille imposée par le fournisseur) ; l'échec d'un lot
     est logué et n'interrompt pas les autres
  7. Reçus écrits en une fois pour tous les messages tentés, qu'ils aient
     été délivrés ou non (pas de renvoi en boucle au prochain passage)
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from halaqa.config import settings
from halaqa.models.notification_log import NotificationLog
from halaqa.models.participant import Participant, ParticipantSeries
from halaqa.models.series import Series
from halaqa.models.session import HalaqaSession
from halaqa.schemas.reminder import PushMessage, ReminderRunResult
from halaqa.services.push_service import PushProvider, is_push_token
from halaqa.timeutils import to_instant, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SERIES_NAME = "Halaqa"


@dataclass
class _ReminderRun:
    """État local à une exécution : jeté à la fin, jamais persisté."""

    now: datetime
    series_names: Dict[str, str] = field(default_factory=dict)
    queued: Set[Tuple[str, str]] = field(default_factory=set)
    messages: List[PushMessage] = field(default_factory=list)
    receipts: List[NotificationLog] = field(default_factory=list)
    result: ReminderRunResult = field(default_factory=ReminderRunResult)


def hash_push_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def make_receipt_id(session_id: str, series_id: str, token: str) -> str:
    return f"{session_id}_{series_id}_{hash_push_token(token)}"


def resolve_zone(name: Optional[str]) -> tzinfo:
    """Fuseau du participant, sinon DEFAULT_TIMEZONE, sinon UTC."""
    for candidate in (name, settings.DEFAULT_TIMEZONE):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug("Fuseau horaire inconnu : %s", candidate)
    return timezone.utc


def format_reminder(series_name: str, start_at: Optional[datetime], time_zone: Optional[str]) -> Tuple[str, str]:
    """Titre et corps du rappel, heure de début rendue dans le fuseau du destinataire."""
    title = f"{series_name} starts soon"
    start = to_instant(start_at)
    if start is None:
        return title, "Your session starts soon. See you there!"

    zone = resolve_zone(time_zone)
    local = start.astimezone(zone)
    label = local.strftime("%I:%M %p").lstrip("0")
    zone_name = getattr(zone, "key", "UTC")
    return title, f"Your session starts at {label} ({zone_name}). See you there!"


def _series_name(db: Session, run: _ReminderRun, series_id: str) -> str:
    if series_id not in run.series_names:
        series = db.get(Series, series_id)
        run.series_names[series_id] = (series.name if series is not None and series.name else DEFAULT_SERIES_NAME)
    return run.series_names[series_id]


def _queue_session(db: Session, run: _ReminderRun, session: HalaqaSession) -> None:
    """Sélectionne et dédoublonne les destinataires d'une session, puis met leurs messages en file."""
    series_name = _series_name(db, run, session.series_id)

    recipients = db.execute(
        select(Participant)
        .join(ParticipantSeries, ParticipantSeries.participant_id == Participant.id)
        .where(
            ParticipantSeries.series_id == session.series_id,
            Participant.notifications_enabled.is_(True),
        )
        .order_by(Participant.id)
    ).scalars().all()

    candidates = []
    for participant in recipients:
        token = (participant.push_token or "").strip()
        if not is_push_token(token):
            run.result.no_token_count += 1
            if token:
                logger.warning("Token push malformé ignoré (participant %s)", participant.id)
            continue
        candidates.append((participant, token, make_receipt_id(session.id, session.series_id, token)))

    if not candidates:
        return

    already_sent = set(
        db.execute(
            select(NotificationLog.id).where(NotificationLog.id.in_([c[2] for c in candidates]))
        ).scalars().all()
    )

    for participant, token, receipt_id in candidates:
        if receipt_id in already_sent:
            run.result.already_sent_count += 1
            continue

        if (session.series_id, token) in run.queued:
            run.result.duplicate_count += 1
            logger.debug("Rappel déjà en file pour la série %s (participant %s)", session.series_id, participant.id)
            continue
        run.queued.add((session.series_id, token))

        title, body = format_reminder(series_name, session.start_at, participant.time_zone)
        run.messages.append(
            PushMessage(
                to=token,
                title=title,
                body=body,
                data={"sessionId": session.id, "seriesId": session.series_id},
            )
        )
        run.receipts.append(
            NotificationLog(
                id=receipt_id,
                session_id=session.id,
                series_id=session.series_id,
                token_hash=hash_push_token(token),
                sent_at=run.now,
            )
        )


def _send_chunks(push_client: PushProvider, run: _ReminderRun) -> None:
    chunk_size = max(1, getattr(push_client, "chunk_size", None) or settings.PUSH_CHUNK_SIZE)

    for start in range(0, len(run.messages), chunk_size):
        chunk = run.messages[start:start + chunk_size]
        run.result.attempted_count += len(chunk)
        try:
            tickets = push_client.send(chunk) or []
        except Exception as exc:
            error_msg = f"Lot {start // chunk_size + 1} ({len(chunk)} messages) en échec : {exc}"
            run.result.errors.append(error_msg)
            logger.error(error_msg)
            continue

        for ticket in tickets:
            if isinstance(ticket, dict) and ticket.get("status") == "error":
                error_msg = f"Ticket en erreur : {ticket.get('message') or ticket.get('details')}"
                run.result.errors.append(error_msg)
                logger.warning(error_msg)


def dispatch_session_reminders(
    db: Session,
    push_client: PushProvider,
    now: Optional[datetime] = None,
    lookahead_hours: Optional[int] = None,
) -> ReminderRunResult:
    """
    Exécute un passage complet du job de rappels et retourne son rapport.
    Les échecs du fournisseur push ne lèvent pas d'exception.
    """
    run = _ReminderRun(now=to_instant(now) or utcnow())
    hours = lookahead_hours if lookahead_hours is not None else settings.REMINDER_LOOKAHEAD_HOURS
    window_end = run.now + timedelta(hours=hours)

    sessions = db.execute(
        select(HalaqaSession)
        .where(
            HalaqaSession.start_at >= run.now,
            HalaqaSession.start_at <= window_end,
        )
        .order_by(HalaqaSession.start_at, HalaqaSession.id)
    ).scalars().all()
    run.result.sessions_count = len(sessions)

    for session in sessions:
        _queue_session(db, run, session)

    if run.messages:
        _send_chunks(push_client, run)

        db.add_all(run.receipts)
        try:
            db.commit()
            run.result.receipts_written = len(run.receipts)
        except SQLAlchemyError as exc:
            db.rollback()
            error_msg = f"Écriture des reçus en échec : {exc}"
            run.result.errors.append(error_msg)
            logger.error(error_msg)

    logger.info(
        "Rappels : %d sessions, %d tentés, %d sans token, %d déjà envoyés, %d doublons, %d erreurs",
        run.result.sessions_count,
        run.result.attempted_count,
        run.result.no_token_count,
        run.result.already_sent_count,
        run.result.duplicate_count,
        len(run.result.errors),
    )
    return run.result
