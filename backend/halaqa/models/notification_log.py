"""
Modèle SQLAlchemy pour les reçus d'envoi de rappels.
L'existence d'une ligne signifie : ne pas renvoyer ce rappel à ce destinataire.
"""

from sqlalchemy import Column, DateTime, String, func

from halaqa.database import Base


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id = Column(String(400), primary_key=True)  # "{session_id}_{series_id}_{hash(token)}"
    session_id = Column(String(128), nullable=False)
    series_id = Column(String(128), nullable=False)
    token_hash = Column(String(64), nullable=False)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())
