"""
Tests unitaires pour la conversion des timestamps stockés.
"""

from datetime import datetime, timedelta, timezone

import pytest

from halaqa.timeutils import to_instant

UTC_INSTANT = datetime(2026, 3, 1, 16, 0, tzinfo=timezone.utc)


def test_datetime_aware_converti_en_utc():
    dubai = timezone(timedelta(hours=4))
    assert to_instant(datetime(2026, 3, 1, 20, 0, tzinfo=dubai)) == UTC_INSTANT


def test_datetime_naive_considere_utc():
    assert to_instant(datetime(2026, 3, 1, 16, 0)) == UTC_INSTANT


def test_millisecondes_epoch():
    millis = int(UTC_INSTANT.timestamp() * 1000)
    assert to_instant(millis) == UTC_INSTANT


def test_chaine_iso():
    assert to_instant("2026-03-01T16:00:00Z") == UTC_INSTANT
    assert to_instant("2026-03-01T20:00:00+04:00") == UTC_INSTANT


@pytest.mark.parametrize(
    "value",
    [None, 0, -5, True, "", "hier", datetime(1970, 1, 1, tzinfo=timezone.utc), object()],
)
def test_valeur_absente_ou_illisible(value):
    assert to_instant(value) is None
