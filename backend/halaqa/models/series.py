"""
Modèle SQLAlchemy pour les séries (programmes récurrents de sessions).
Créées par l'administration ; l'API ne fait que les lire.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, String, func

from halaqa.database import Base


class Series(Base):
    __tablename__ = "series"

    id = Column(String(128), primary_key=True)
    name = Column(String(255), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=False)
    completed = Column(Boolean, default=False)
    rewards = Column(JSON, nullable=True)  # Seuils bruts, normalisés à la lecture
    created_at = Column(DateTime(timezone=True), server_default=func.now())
