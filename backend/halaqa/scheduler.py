"""
Planificateur APScheduler pour l'envoi automatique des rappels avant les sessions.

Le job s'exécute toutes les REMINDER_INTERVAL_HOURS heures et notifie les
participants abonnés aux séries dont une session commence dans les
REMINDER_LOOKAHEAD_HOURS prochaines heures, si ce n'est pas déjà fait.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from halaqa.config import settings
from halaqa.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _send_session_reminders_scheduled() -> None:
    """
    Tâche planifiée : une session BDD et un client push propres à chaque exécution.
    Import local pour éviter les imports circulaires.
    """
    from halaqa.services.push_service import ExpoPushClient
    from halaqa.services.reminder_service import dispatch_session_reminders

    db = SessionLocal()
    try:
        result = dispatch_session_reminders(db, ExpoPushClient())
        logger.info(
            "Rappels automatiques : %d sessions, %d envoyés, %d déjà envoyés, %d erreurs",
            result.sessions_count,
            result.attempted_count,
            result.already_sent_count,
            len(result.errors),
        )
    except Exception as exc:
        logger.error("Erreur lors de l'envoi automatique des rappels : %s", exc, exc_info=True)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _send_session_reminders_scheduled,
        trigger="interval",
        hours=settings.REMINDER_INTERVAL_HOURS,
        id="session_reminders",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré : rappels de session toutes les %d heures.",
        settings.REMINDER_INTERVAL_HOURS,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
