"""
Router pour le déclenchement manuel du job de rappels.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from halaqa.database import get_db
from halaqa.schemas.reminder import ReminderRunResult
from halaqa.services import reminder_service
from halaqa.services.push_service import ExpoPushClient, get_push_client

router = APIRouter(prefix="/api/v1/reminders", tags=["Rappels"])


@router.post("/dispatch", response_model=ReminderRunResult, summary="Envoyer les rappels maintenant")
def dispatch_reminders(
    db: Session = Depends(get_db),
    push_client: ExpoPushClient = Depends(get_push_client),
):
    """
    Exécute immédiatement un passage du job planifié.
    Idempotent : les destinataires déjà notifiés pour une session sont ignorés.
    """
    return reminder_service.dispatch_session_reminders(db, push_client)
