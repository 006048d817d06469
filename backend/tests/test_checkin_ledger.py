"""
Tests transactionnels du registre des présences (SQLite en mémoire, fichier pour
les transactions entrelacées).
Couverture : au plus une présence par (session, participant), incrément
d'expérience unique, scans concurrents, scénario scan → re-scan → mauvais token.
"""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql.dml import Update

from halaqa.database import Base
from halaqa.models.attendance import Attendance
from halaqa.models.participant import Participant
from halaqa.models.series import Series
from halaqa.models.session import HalaqaSession
from halaqa.schemas.checkin import CheckInRequest
from halaqa.services.checkin_service import check_in


def seed_session(db, now, session_id="S1", series_id="ramadan", token="abc"):
    if db.get(Series, series_id) is None:
        db.add(Series(id=series_id, name="Ramadan Nights", is_active=True))
    db.add(
        HalaqaSession(
            id=session_id,
            series_id=series_id,
            start_at=now,
            checkin_open_at=now,
            checkin_close_at=now + timedelta(hours=1),
            token=token,
        )
    )
    db.commit()


def request(participant_id="p1", session_id="S1", series_id="ramadan", token="abc") -> CheckInRequest:
    return CheckInRequest(
        participant_id=participant_id,
        session_id=session_id,
        series_id=series_id,
        token=token,
    )


def count_attendance(db) -> int:
    return db.execute(select(func.count()).select_from(Attendance)).scalar()


def test_scenario_scan_rescan_mauvais_token(db_session, now):
    seed_session(db_session, now)

    first = check_in(db_session, request(), now=now)
    second = check_in(db_session, request(), now=now)
    wrong = check_in(db_session, request(token="xyz"), now=now)

    assert first.model_dump() == {"ok": True, "message": "Checked in!"}
    assert second.model_dump() == {"ok": False, "message": "Already checked in."}
    assert wrong.model_dump() == {"ok": False, "message": "This QR code has expired."}


def test_tentatives_repetees_une_seule_presence(db_session, now):
    seed_session(db_session, now)

    results = [check_in(db_session, request(), now=now) for _ in range(5)]

    assert [r.ok for r in results].count(True) == 1
    assert all(r.message == "Already checked in." for r in results if not r.ok)
    assert count_attendance(db_session) == 1
    assert db_session.get(Participant, "p1").experience == 1


def test_cle_deterministe_et_timestamp_serveur(db_session, now):
    seed_session(db_session, now)

    check_in(db_session, request(), now=now)

    attendance = db_session.get(Attendance, "S1_p1")
    assert attendance is not None
    assert attendance.participant_id == "p1"
    assert attendance.series_id == "ramadan"
    assert attendance.timestamp is not None


def test_experience_incrementee_par_session_distincte(db_session, now):
    seed_session(db_session, now, session_id="S1")
    seed_session(db_session, now, session_id="S2")
    db_session.add(Participant(id="p1", nickname="Amina", experience=4))
    db_session.commit()

    check_in(db_session, request(session_id="S1"), now=now)
    check_in(db_session, request(session_id="S2"), now=now)
    check_in(db_session, request(session_id="S2"), now=now)

    participant = db_session.get(Participant, "p1")
    db_session.refresh(participant)
    assert participant.experience == 6
    assert participant.nickname == "Amina"
    assert participant.last_seen_at is not None


def test_refus_sans_effet_de_bord(db_session, now):
    seed_session(db_session, now)

    result = check_in(db_session, request(), now=now + timedelta(hours=2))

    assert result.message == "Check-in is closed."
    assert count_attendance(db_session) == 0
    assert db_session.get(Participant, "p1") is None


def test_participants_differents_meme_session(db_session, now):
    seed_session(db_session, now)

    assert check_in(db_session, request(participant_id="p1"), now=now).ok
    assert check_in(db_session, request(participant_id="p2"), now=now).ok
    assert count_attendance(db_session) == 2


# ============================================================
# Deux transactions réelles entrelacées (SQLite fichier)
# ============================================================

@pytest.fixture
def two_sessions(tmp_path):
    """Deux sessions SQLAlchemy indépendantes sur la même base fichier."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first, second = factory(), factory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        engine.dispose()


def commit_competitor_before_update(db, competitor):
    """
    Fait passer `competitor()` entre la lecture de la présence et l'écriture
    de `db` : au moment de l'UPDATE d'expérience, l'autre check-in est déjà commité.
    """
    original_execute = db.execute
    results = []

    def execute(statement, *args, **kwargs):
        if isinstance(statement, Update) and not results:
            results.append(competitor())
        return original_execute(statement, *args, **kwargs)

    db.execute = execute
    return results


def test_scans_concurrents_une_seule_presence(two_sessions, now):
    first, second = two_sessions
    seed_session(first, now)
    first.add(Participant(id="p1", experience=0))
    first.commit()

    competitor = commit_competitor_before_update(
        first, lambda: check_in(second, request(), now=now)
    )
    result = check_in(first, request(), now=now)

    assert competitor[0].model_dump() == {"ok": True, "message": "Checked in!"}
    assert result.model_dump() == {"ok": False, "message": "Already checked in."}

    second.expire_all()
    assert count_attendance(second) == 1
    assert second.get(Participant, "p1").experience == 1
