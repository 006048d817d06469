"""
Schémas Pydantic pour les récompenses de série, les niveaux et l'évolution d'avatar.
"""

from typing import List

from pydantic import BaseModel, field_validator


class RewardStatus(BaseModel):
    """Progression vers la prochaine récompense d'une série."""
    target: int
    progress: float
    can_claim: bool
    all_claimed: bool
    current_count: int


class RewardClaimRequest(BaseModel):
    threshold: int

    @field_validator("threshold")
    @classmethod
    def threshold_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Reward threshold must be a positive number.")
        return v


class RewardClaimResponse(BaseModel):
    participant_id: str
    series_id: str
    claimed: List[int]
    reward_status: RewardStatus


class LevelProgress(BaseModel):
    level: int
    current_level_at: int
    next_level_at: int
    progress: float
    total: int


class EvolutionResponse(BaseModel):
    participant_id: str
    avatar_id: str
    form_level: int
    form_count: int
    last_evolved_experience: int
    can_evolve: bool
