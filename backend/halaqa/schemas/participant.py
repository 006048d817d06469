"""
Schémas Pydantic pour le profil participant (mises à jour partielles).
"""

from typing import Optional

from pydantic import BaseModel, field_validator

VALID_AGE_BANDS = {"5-7", "8-10", "11-13", "14-17", "18-35", "36+"}


class ParticipantPatch(BaseModel):
    """
    Mise à jour partielle du profil : seuls les champs fournis sont écrits.
    Le participant est créé s'il n'existe pas encore (upsert champ par champ).
    """
    nickname: Optional[str] = None
    age_band: Optional[str] = None
    time_zone: Optional[str] = None
    avatar_id: Optional[str] = None

    @field_validator("nickname")
    @classmethod
    def nickname_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Nickname cannot be empty.")
        return v.strip() if v is not None else v

    @field_validator("age_band")
    @classmethod
    def valid_age_band(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_AGE_BANDS:
            raise ValueError(f"Invalid age band. Accepted values: {sorted(VALID_AGE_BANDS)}")
        return v


class ParticipantResponse(BaseModel):
    id: str
    nickname: Optional[str]
    age_band: Optional[str]
    time_zone: Optional[str]
    avatar_id: Optional[str]
    experience: Optional[int]
    notifications_enabled: bool

    model_config = {"from_attributes": True}


class NotificationEnable(BaseModel):
    push_token: str

    @field_validator("push_token")
    @classmethod
    def push_token_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Push token cannot be empty.")
        return v.strip()


class NotificationStatus(BaseModel):
    participant_id: str
    notifications_enabled: bool
