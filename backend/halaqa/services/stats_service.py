"""
Service de statistiques d'un participant (totaux, streaks, séries, badges).

Les fonctions de calcul sont pures et opèrent sur des lignes déjà lues.
Rien n'est mis en cache : le tableau de bord est recalculé depuis le
registre des présences à chaque chargement.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from halaqa.models.attendance import Attendance
from halaqa.models.participant import Participant, RewardClaim
from halaqa.models.series import Series
from halaqa.models.session import HalaqaSession
from halaqa.schemas.stats import (
    Badge,
    ParticipantDashboard,
    ParticipantStats,
    SeriesStreak,
    SeriesSummary,
    Totals,
)
from halaqa.services.reward_service import get_level_progress, get_reward_status
from halaqa.timeutils import to_instant, utcnow

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def calculate_totals(attendance_dates: Iterable) -> Totals:
    """
    Nombre de check-ins et date du plus récent.
    Un timestamp illisible compte dans le total mais pas pour la date.
    """
    dates = list(attendance_dates)
    instants = [i for i in (to_instant(d) for d in dates) if i is not None]

    return Totals(
        total_check_ins=len(dates),
        last_check_in_date=max(instants).date().isoformat() if instants else None,
    )


def calculate_series_streak(
    sessions: Sequence,
    attendance: Iterable,
    now: Optional[datetime] = None,
) -> SeriesStreak:
    """
    Streak courant et record d'une série.

    1. Sessions terminées : start_at <= now (sans start_at = considérée terminée)
    2. Tri par start_at croissant, puis par id pour départager
    3. Parcours : +1 si présent, remise à 0 sinon ; record = maximum atteint
    """
    if not sessions:
        return SeriesStreak(current_streak=0, highest_streak=0)

    current_time = to_instant(now) or utcnow()
    attended_ids = {record.session_id for record in attendance if record.session_id}

    completed = []
    for session in sessions:
        start = to_instant(session.start_at)
        if start is None or start <= current_time:
            completed.append((start or _EPOCH, session.id))
    completed.sort()

    current_streak = 0
    highest_streak = 0
    for _, session_id in completed:
        if session_id in attended_ids:
            current_streak += 1
            highest_streak = max(highest_streak, current_streak)
        else:
            current_streak = 0

    return SeriesStreak(current_streak=current_streak, highest_streak=highest_streak)


def count_series_participated(attendance: Iterable) -> int:
    return len({record.series_id for record in attendance if record.series_id})


def summarize_series(
    attendance: Iterable,
    series_by_id: Dict[str, Series],
    claims_by_series: Dict[str, List[int]],
) -> List[SeriesSummary]:
    """Un résumé par série fréquentée, de la plus récemment fréquentée à la plus ancienne."""
    counts: Dict[str, int] = {}
    last_seen: Dict[str, Optional[datetime]] = {}
    for record in attendance:
        if not record.series_id:
            continue
        counts[record.series_id] = counts.get(record.series_id, 0) + 1
        instant = to_instant(record.timestamp)
        previous = last_seen.get(record.series_id)
        if instant is not None and (previous is None or instant > previous):
            last_seen[record.series_id] = instant

    summaries = []
    for series_id, count in counts.items():
        series = series_by_id.get(series_id)
        summaries.append(
            SeriesSummary(
                id=series_id,
                name=(series.name if series is not None and series.name else series_id),
                sessions_attended=count,
                last_attended_at=last_seen.get(series_id),
                is_active=bool(series.is_active) if series is not None else False,
                is_completed=bool(series.completed) if series is not None else False,
                reward_status=get_reward_status(
                    series.rewards if series is not None else None,
                    claims_by_series.get(series_id, []),
                    count,
                ),
            )
        )

    summaries.sort(key=lambda s: s.last_attended_at or _EPOCH, reverse=True)
    return summaries


def get_badges(stats: ParticipantStats) -> List[Badge]:
    return [
        Badge(
            id="first-checkin",
            title="First Step",
            description="First check-in completed",
            unlocked=stats.total_check_ins >= 1,
        ),
        Badge(
            id="five-checkins",
            title="High Five",
            description="5 check-ins total",
            unlocked=stats.total_check_ins >= 5,
        ),
        Badge(
            id="three-week-streak",
            title="Steady Streak",
            description="3 weeks in a row",
            unlocked=stats.current_streak >= 3,
        ),
    ]


def get_participant_dashboard(
    db: Session,
    participant_id: str,
    now: Optional[datetime] = None,
) -> ParticipantDashboard:
    """
    Agrège le tableau de bord d'un participant.

    Étapes :
    1. Présences du participant + série active + réclamations de récompenses
    2. Streak calculé sur la série active (0/0 si aucune)
    3. Résumés par série (avec état des récompenses), totaux, niveau, badges

    Lève ValueError si le participant est introuvable.
    """
    participant = db.get(Participant, participant_id)
    if participant is None:
        raise ValueError(f"Participant {participant_id} not found.")

    attendance = db.execute(
        select(Attendance).where(Attendance.participant_id == participant_id)
    ).scalars().all()

    active_series = db.execute(
        select(Series).where(Series.is_active.is_(True)).order_by(Series.id).limit(1)
    ).scalar()

    claims = db.execute(
        select(RewardClaim).where(RewardClaim.participant_id == participant_id)
    ).scalars().all()
    claims_by_series: Dict[str, List[int]] = {}
    for claim in claims:
        claims_by_series.setdefault(claim.series_id, []).append(claim.threshold)

    streak = SeriesStreak(current_streak=0, highest_streak=0)
    if active_series is not None:
        sessions = db.execute(
            select(HalaqaSession).where(HalaqaSession.series_id == active_series.id)
        ).scalars().all()
        series_attendance = [a for a in attendance if a.series_id == active_series.id]
        streak = calculate_series_streak(sessions, series_attendance, now=now)

    series_ids = sorted({a.series_id for a in attendance if a.series_id})
    series_rows = []
    if series_ids:
        series_rows = db.execute(select(Series).where(Series.id.in_(series_ids))).scalars().all()
    summaries = summarize_series(attendance, {s.id: s for s in series_rows}, claims_by_series)

    totals = calculate_totals(a.timestamp for a in attendance)
    stats = ParticipantStats(
        total_check_ins=totals.total_check_ins,
        current_streak=streak.current_streak,
        highest_streak=streak.highest_streak,
        series_participated=count_series_participated(attendance),
        last_check_in_date=totals.last_check_in_date,
    )
    experience = participant.experience if participant.experience is not None else totals.total_check_ins

    logger.debug(
        "Tableau de bord participant %s : %d check-ins, %d séries",
        participant_id, stats.total_check_ins, stats.series_participated,
    )
    return ParticipantDashboard(
        participant_id=participant_id,
        stats=stats,
        experience=experience,
        level=get_level_progress(experience),
        series=summaries,
        badges=get_badges(stats),
    )
