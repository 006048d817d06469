"""
Modèles SQLAlchemy pour les participants et leurs données associées.

Les champs tableau du profil mobile sont normalisés :
- participant_series       : séries suivies (rappels)
- participant_avatar_forms : niveau de forme par avatar
- reward_claims            : seuils de récompense réclamés par série
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from halaqa.database import Base


class Participant(Base):
    __tablename__ = "participants"

    id = Column(String(128), primary_key=True)
    nickname = Column(String(100), nullable=True)
    age_band = Column(String(10), nullable=True)
    time_zone = Column(String(64), nullable=True)

    avatar_id = Column(String(64), nullable=True)
    experience = Column(Integer, nullable=True)               # NULL = dérivé du nombre de check-ins
    last_evolved_experience = Column(Integer, nullable=True)  # Watermark de la dernière évolution

    notifications_enabled = Column(Boolean, default=False)
    push_token = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_seen_at = Column(DateTime(timezone=True), nullable=True)


class ParticipantSeries(Base):
    """Abonnement participant ↔ série (ciblage des rappels)."""
    __tablename__ = "participant_series"

    participant_id = Column(String(128), ForeignKey("participants.id", ondelete="CASCADE"), primary_key=True)
    series_id = Column(String(128), ForeignKey("series.id", ondelete="CASCADE"), primary_key=True)
    subscribed_at = Column(DateTime(timezone=True), server_default=func.now())


class AvatarFormLevel(Base):
    """Niveau de forme atteint par un participant pour un avatar donné (1 = forme initiale)."""
    __tablename__ = "participant_avatar_forms"

    participant_id = Column(String(128), ForeignKey("participants.id", ondelete="CASCADE"), primary_key=True)
    avatar_id = Column(String(64), primary_key=True)
    form_level = Column(Integer, nullable=False, default=1)


class RewardClaim(Base):
    """Seuil réclamé : la clé primaire composite fait de l'ensemble une union idempotente."""
    __tablename__ = "reward_claims"

    participant_id = Column(String(128), ForeignKey("participants.id", ondelete="CASCADE"), primary_key=True)
    series_id = Column(String(128), primary_key=True)
    threshold = Column(Integer, primary_key=True)
    claimed_at = Column(DateTime(timezone=True), server_default=func.now())
