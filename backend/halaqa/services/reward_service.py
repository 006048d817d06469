"""
Service des récompenses de série, des niveaux et de l'évolution d'avatar.

Fonctions pures :
- normalize_rewards / get_reward_status : progression vers la prochaine récompense
- get_level_progress : courbe de niveau (table configurable + pas constant)
- can_evolve : droit d'évoluer d'une forme

Écritures :
- claim_series_reward : ajout idempotent d'un seuil à l'ensemble réclamé
- evolve_avatar : avance d'exactement une forme, avec le watermark d'expérience
"""

import logging
import math
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from halaqa.config import settings
from halaqa.models.attendance import Attendance
from halaqa.models.participant import AvatarFormLevel, Participant, RewardClaim
from halaqa.models.series import Series
from halaqa.schemas.rewards import EvolutionResponse, LevelProgress, RewardClaimResponse, RewardStatus
from halaqa.timeutils import utcnow

logger = logging.getLogger(__name__)

# Nombre de formes disponibles par avatar
AVATAR_FORM_COUNTS: Dict[str, int] = {
    "plant-1": 12,
    "flower-1": 10,
    "airplane-1": 10,
    "earth-1": 10,
    "robot-1": 10,
    "tree-1": 8,
    "pink-gem-1": 8,
}


# ============================================================
# Récompenses de série
# ============================================================

def normalize_rewards(values) -> List[int]:
    """Seuils entiers strictement positifs, dédupliqués, triés. Valeurs non numériques ignorées."""
    if not isinstance(values, (list, tuple, set)):
        return []

    thresholds = set()
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if not math.isfinite(value):
            continue
        floored = math.floor(value)
        if floored > 0:
            thresholds.add(floored)
    return sorted(thresholds)


def get_reward_status(
    rewards,
    claimed_rewards: Optional[Iterable[int]],
    sessions_attended: int,
) -> Optional[RewardStatus]:
    """
    Calcule l'état des récompenses d'une série pour un participant.

    - prochaine récompense = plus petit seuil non réclamé
    - cible = prochaine récompense, ou dernier seuil si tout est réclamé
    - progression = min(présences, cible) / cible
    - can_claim ssi une prochaine récompense existe et présences >= seuil

    Retourne None si la série n'a aucun seuil.
    """
    thresholds = normalize_rewards(rewards)
    if not thresholds:
        return None

    claimed = set(claimed_rewards or [])
    next_reward = next((t for t in thresholds if t not in claimed), None)
    all_claimed = next_reward is None
    target = next_reward if next_reward is not None else thresholds[-1]
    current_count = min(sessions_attended, target)

    return RewardStatus(
        target=target,
        progress=current_count / target,
        can_claim=next_reward is not None and sessions_attended >= next_reward,
        all_claimed=all_claimed,
        current_count=current_count,
    )


def get_claimed_thresholds(db: Session, participant_id: str, series_id: str) -> List[int]:
    return sorted(
        db.execute(
            select(RewardClaim.threshold).where(
                RewardClaim.participant_id == participant_id,
                RewardClaim.series_id == series_id,
            )
        ).scalars().all()
    )


def count_series_attendance(db: Session, participant_id: str, series_id: str) -> int:
    return db.execute(
        select(func.count()).select_from(Attendance).where(
            Attendance.participant_id == participant_id,
            Attendance.series_id == series_id,
        )
    ).scalar() or 0


def get_series_reward_status(db: Session, participant_id: str, series_id: str) -> Optional[RewardStatus]:
    """État des récompenses d'une série, recalculé depuis le registre. ValueError si série inconnue."""
    series = db.get(Series, series_id)
    if series is None:
        raise ValueError(f"Series {series_id} not found.")

    return get_reward_status(
        series.rewards,
        get_claimed_thresholds(db, participant_id, series_id),
        count_series_attendance(db, participant_id, series_id),
    )


def claim_series_reward(
    db: Session,
    participant_id: str,
    series_id: str,
    threshold: int,
) -> RewardClaimResponse:
    """
    Réclame un seuil de récompense pour une série.

    Validations :
    1. La série existe et le seuil fait partie de ses seuils
    2. Le participant a assisté à au moins `threshold` sessions de la série

    Écriture : insertion de (participant, série, seuil) si absente. Réclamer
    deux fois le même seuil est sans effet (union d'ensemble).
    """
    series = db.get(Series, series_id)
    if series is None:
        raise ValueError(f"Series {series_id} not found.")

    thresholds = normalize_rewards(series.rewards)
    if threshold not in thresholds:
        raise ValueError(f"{threshold} is not a reward threshold of this series.")

    attended = count_series_attendance(db, participant_id, series_id)
    if attended < threshold:
        raise ValueError(
            f"Reward not unlocked yet: {attended}/{threshold} sessions attended."
        )

    participant = db.get(Participant, participant_id)
    if participant is None:
        raise ValueError(f"Participant {participant_id} not found.")

    inserted = db.get(RewardClaim, (participant_id, series_id, threshold)) is None
    if inserted:
        db.add(RewardClaim(participant_id=participant_id, series_id=series_id, threshold=threshold))
    participant.last_seen_at = utcnow()

    try:
        db.commit()
    except IntegrityError:
        # Réclamation concurrente du même seuil : déjà présent, seul last_seen_at reste à écrire
        db.rollback()
        inserted = False
        participant = db.get(Participant, participant_id)
        participant.last_seen_at = utcnow()
        db.commit()

    if inserted:
        logger.info("Récompense %s réclamée : participant %s, série %s", threshold, participant_id, series_id)
    else:
        logger.debug("Récompense %s déjà réclamée (série %s, participant %s)", threshold, series_id, participant_id)

    claimed = get_claimed_thresholds(db, participant_id, series_id)

    return RewardClaimResponse(
        participant_id=participant_id,
        series_id=series_id,
        claimed=claimed,
        reward_status=get_reward_status(series.rewards, claimed, attended),
    )


# ============================================================
# Niveaux
# ============================================================

def get_level_progress(
    total: int,
    thresholds: Optional[List[int]] = None,
    extra_step: Optional[int] = None,
) -> LevelProgress:
    """
    Convertit l'expérience cumulée en niveau.

    thresholds[i] = expérience à laquelle commence le niveau i + 1 (niveau 1 à 0).
    Au-delà de la table : un niveau de plus tous les `extra_step` points.
    """
    table = thresholds if thresholds is not None else settings.LEVEL_THRESHOLDS
    step = max(1, extra_step if extra_step is not None else settings.LEVEL_EXTRA_STEP)
    table = sorted(set([0] + [t for t in table if t > 0]))

    experience = max(0, math.floor(total))
    last_level_at = table[-1]

    if experience >= last_level_at:
        extra_levels = (experience - last_level_at) // step
        level = len(table) + extra_levels
        current_level_at = last_level_at + extra_levels * step
        next_level_at = current_level_at + step
    else:
        index = max(i for i, at in enumerate(table) if experience >= at)
        level = index + 1
        current_level_at = table[index]
        next_level_at = table[index + 1]

    return LevelProgress(
        level=level,
        current_level_at=current_level_at,
        next_level_at=next_level_at,
        progress=(experience - current_level_at) / (next_level_at - current_level_at),
        total=experience,
    )


# ============================================================
# Évolution d'avatar
# ============================================================

def get_effective_experience(db: Session, participant: Participant) -> int:
    """Compteur d'expérience du participant, ou nombre total de check-ins s'il est absent."""
    if participant.experience is not None:
        return participant.experience
    return db.execute(
        select(func.count()).select_from(Attendance).where(Attendance.participant_id == participant.id)
    ).scalar() or 0


def can_evolve(
    form_level: int,
    form_count: int,
    effective_experience: int,
    last_evolved_experience: Optional[int],
) -> bool:
    watermark = last_evolved_experience if last_evolved_experience is not None else -1
    return (
        form_level < form_count
        and effective_experience > 0
        and watermark < effective_experience
    )


def evolve_avatar(db: Session, participant_id: str) -> EvolutionResponse:
    """
    Fait évoluer l'avatar courant d'exactement une forme.

    La ligne du participant est verrouillée (SELECT ... FOR UPDATE) : deux
    demandes simultanées ne peuvent pas sauter une forme. Le nouveau niveau
    et le watermark sont écrits dans le même commit.
    """
    participant = db.get(Participant, participant_id, with_for_update=True)
    if participant is None:
        raise ValueError(f"Participant {participant_id} not found.")

    avatar_id = participant.avatar_id
    form_count = AVATAR_FORM_COUNTS.get(avatar_id or "")
    if form_count is None:
        db.rollback()
        raise ValueError("No avatar selected.")

    entry = db.get(AvatarFormLevel, (participant_id, avatar_id))
    form_level = max(1, entry.form_level) if entry is not None else 1
    experience = get_effective_experience(db, participant)

    if not can_evolve(form_level, form_count, experience, participant.last_evolved_experience):
        db.rollback()
        raise ValueError("Avatar cannot evolve yet.")

    next_level = form_level + 1
    if entry is None:
        db.add(AvatarFormLevel(participant_id=participant_id, avatar_id=avatar_id, form_level=next_level))
    else:
        entry.form_level = next_level
    participant.last_evolved_experience = experience
    participant.last_seen_at = utcnow()
    db.commit()

    logger.info(
        "Avatar %s du participant %s : forme %d → %d (expérience %d)",
        avatar_id, participant_id, form_level, next_level, experience,
    )
    return EvolutionResponse(
        participant_id=participant_id,
        avatar_id=avatar_id,
        form_level=next_level,
        form_count=form_count,
        last_evolved_experience=experience,
        can_evolve=False,
    )
