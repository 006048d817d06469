"""
Tests unitaires pour la tâche planifiée des rappels.
"""

from unittest.mock import MagicMock, patch

from halaqa.scheduler import _send_session_reminders_scheduled
from halaqa.schemas.reminder import ReminderRunResult


@patch("halaqa.services.reminder_service.dispatch_session_reminders")
@patch("halaqa.scheduler.SessionLocal")
def test_tache_ferme_la_session(mock_session_local, mock_dispatch):
    db = MagicMock()
    mock_session_local.return_value = db
    mock_dispatch.return_value = ReminderRunResult(sessions_count=1, attempted_count=2)

    _send_session_reminders_scheduled()

    assert mock_dispatch.call_args.args[0] is db
    db.close.assert_called_once()


@patch("halaqa.services.reminder_service.dispatch_session_reminders")
@patch("halaqa.scheduler.SessionLocal")
def test_tache_erreur_ne_remonte_pas(mock_session_local, mock_dispatch):
    db = MagicMock()
    mock_session_local.return_value = db
    mock_dispatch.side_effect = RuntimeError("database unavailable")

    _send_session_reminders_scheduled()

    db.close.assert_called_once()
