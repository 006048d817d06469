"""
Modèle SQLAlchemy pour les sessions planifiées d'une série.

La fenêtre [checkin_open_at, checkin_close_at] borne les check-ins.
rotating_token, s'il est renseigné, remplace le token statique.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from halaqa.database import Base


class HalaqaSession(Base):
    """Session (rencontre) d'une série : nommée ainsi pour ne pas masquer orm.Session."""
    __tablename__ = "sessions"

    id = Column(String(128), primary_key=True)
    series_id = Column(String(128), ForeignKey("series.id", ondelete="CASCADE"), nullable=False, index=True)
    start_at = Column(DateTime(timezone=True), nullable=True, index=True)
    checkin_open_at = Column(DateTime(timezone=True), nullable=True)
    checkin_close_at = Column(DateTime(timezone=True), nullable=True)
    token = Column(String(255), nullable=True)
    rotating_token = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
