"""
Modèle SQLAlchemy pour le registre des présences (append-only).

Clé déterministe : "{session_id}_{participant_id}".
L'unicité de la clé primaire garantit au plus une présence par couple
(session, participant), même sous scans concurrents.
"""

from sqlalchemy import Column, DateTime, String, func

from halaqa.database import Base


class Attendance(Base):
    """Présence enregistrée : jamais modifiée ni supprimée par l'API."""
    __tablename__ = "attendance"

    id = Column(String(300), primary_key=True)
    participant_id = Column(String(128), nullable=False, index=True)
    session_id = Column(String(128), nullable=False)
    series_id = Column(String(128), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())  # Assigné par le serveur

    @staticmethod
    def make_id(session_id: str, participant_id: str) -> str:
        return f"{session_id}_{participant_id}"
