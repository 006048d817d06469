"""
Schémas Pydantic pour les statistiques et le tableau de bord d'un participant.
Endpoint : GET /api/v1/participants/{participant_id}/stats
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from halaqa.schemas.rewards import LevelProgress, RewardStatus


class Totals(BaseModel):
    total_check_ins: int
    last_check_in_date: Optional[str]  # Date du dernier check-in (AAAA-MM-JJ), None si aucun


class SeriesStreak(BaseModel):
    current_streak: int
    highest_streak: int


class ParticipantStats(BaseModel):
    total_check_ins: int
    current_streak: int
    highest_streak: int
    series_participated: int
    last_check_in_date: Optional[str]


class SeriesSummary(BaseModel):
    """Résumé d'une série à laquelle le participant a assisté."""
    id: str
    name: str
    sessions_attended: int
    last_attended_at: Optional[datetime]
    is_active: bool
    is_completed: bool
    reward_status: Optional[RewardStatus] = None


class Badge(BaseModel):
    id: str
    title: str
    description: str
    unlocked: bool


class ParticipantDashboard(BaseModel):
    """Agrégat recalculé à chaque chargement depuis le registre des présences."""
    participant_id: str
    stats: ParticipantStats
    experience: int
    level: LevelProgress
    series: List[SeriesSummary]
    badges: List[Badge]
