"""
Tests d'intégration API pour les participants.
Testent PUT    /api/v1/participants/{participant_id}
      GET/POST/DELETE /api/v1/participants/{participant_id}/notifications
      POST   /api/v1/participants/{participant_id}/series/{series_id}
      GET    /api/v1/participants/{participant_id}/stats
      GET    /api/v1/participants/{participant_id}/series/{series_id}/rewards
      POST   /api/v1/participants/{participant_id}/series/{series_id}/rewards/claim
      POST   /api/v1/participants/{participant_id}/avatar/evolve
"""

from unittest.mock import patch

from halaqa.schemas.participant import NotificationStatus, ParticipantResponse
from halaqa.schemas.rewards import EvolutionResponse, LevelProgress, RewardClaimResponse, RewardStatus
from halaqa.schemas.stats import ParticipantDashboard, ParticipantStats

BASE = "/api/v1/participants"


# --- Helpers ---

def make_reward_status(**kwargs) -> RewardStatus:
    return RewardStatus(
        target=kwargs.get("target", 5),
        progress=kwargs.get("progress", 0.4),
        can_claim=kwargs.get("can_claim", False),
        all_claimed=kwargs.get("all_claimed", False),
        current_count=kwargs.get("current_count", 2),
    )


def make_dashboard() -> ParticipantDashboard:
    return ParticipantDashboard(
        participant_id="p1",
        stats=ParticipantStats(
            total_check_ins=3,
            current_streak=2,
            highest_streak=2,
            series_participated=1,
            last_check_in_date="2026-02-22",
        ),
        experience=3,
        level=LevelProgress(level=3, current_level_at=3, next_level_at=5, progress=0.0, total=3),
        series=[],
        badges=[],
    )


# ============================================================
# Profil
# ============================================================

def test_upsert_profil(client):
    with patch("halaqa.routers.participants.participant_service.upsert_participant") as mock:
        mock.return_value = ParticipantResponse(
            id="p1", nickname="Amina", age_band="8-10", time_zone=None,
            avatar_id=None, experience=None, notifications_enabled=False,
        )

        response = client.put(f"{BASE}/p1", json={"nickname": "Amina", "age_band": "8-10"})

    assert response.status_code == 200
    assert response.json()["nickname"] == "Amina"
    patch_data = mock.call_args.args[2]
    assert patch_data.model_dump(exclude_unset=True) == {"nickname": "Amina", "age_band": "8-10"}


def test_upsert_tranche_d_age_invalide(client):
    response = client.put(f"{BASE}/p1", json={"age_band": "100+"})
    assert response.status_code == 422


# ============================================================
# Notifications
# ============================================================

def test_activation_notifications(client):
    with patch("halaqa.routers.participants.participant_service.enable_notifications") as mock:
        mock.return_value = NotificationStatus(participant_id="p1", notifications_enabled=True)

        response = client.post(f"{BASE}/p1/notifications", json={"push_token": "ExponentPushToken[a]"})

    assert response.status_code == 200
    assert response.json()["notifications_enabled"] is True


def test_activation_token_invalide(client):
    with patch("halaqa.routers.participants.participant_service.enable_notifications") as mock:
        mock.side_effect = ValueError("Invalid push token.")

        response = client.post(f"{BASE}/p1/notifications", json={"push_token": "nope"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid push token."


def test_desactivation_participant_introuvable(client):
    with patch("halaqa.routers.participants.participant_service.disable_notifications") as mock:
        mock.side_effect = ValueError("Participant p9 not found.")

        response = client.delete(f"{BASE}/p9/notifications")

    assert response.status_code == 404


def test_statut_notifications(client):
    with patch("halaqa.routers.participants.participant_service.get_notification_status") as mock:
        mock.return_value = NotificationStatus(participant_id="p1", notifications_enabled=False)

        response = client.get(f"{BASE}/p1/notifications")

    assert response.status_code == 200
    assert response.json() == {"participant_id": "p1", "notifications_enabled": False}


# ============================================================
# Abonnement
# ============================================================

def test_abonnement_serie(client):
    with patch("halaqa.routers.participants.participant_service.subscribe_to_series") as mock:
        mock.return_value = True

        response = client.post(f"{BASE}/p1/series/ramadan")

    assert response.status_code == 200
    assert response.json() == {"participant_id": "p1", "series_id": "ramadan", "created": True}


def test_abonnement_serie_introuvable(client):
    with patch("halaqa.routers.participants.participant_service.subscribe_to_series") as mock:
        mock.side_effect = ValueError("Series inconnue not found.")

        response = client.post(f"{BASE}/p1/series/inconnue")

    assert response.status_code == 404


# ============================================================
# Tableau de bord
# ============================================================

def test_tableau_de_bord(client):
    with patch("halaqa.routers.participants.stats_service.get_participant_dashboard") as mock:
        mock.return_value = make_dashboard()

        response = client.get(f"{BASE}/p1/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["current_streak"] == 2
    assert data["level"]["level"] == 3


def test_tableau_de_bord_participant_introuvable(client):
    with patch("halaqa.routers.participants.stats_service.get_participant_dashboard") as mock:
        mock.side_effect = ValueError("Participant p9 not found.")

        response = client.get(f"{BASE}/p9/stats")

    assert response.status_code == 404


# ============================================================
# Récompenses
# ============================================================

def test_statut_recompenses(client):
    with patch("halaqa.routers.participants.reward_service.get_series_reward_status") as mock:
        mock.return_value = make_reward_status()

        response = client.get(f"{BASE}/p1/series/ramadan/rewards")

    assert response.status_code == 200
    assert response.json()["target"] == 5


def test_statut_serie_sans_recompense(client):
    with patch("halaqa.routers.participants.reward_service.get_series_reward_status") as mock:
        mock.return_value = None

        response = client.get(f"{BASE}/p1/series/ramadan/rewards")

    assert response.status_code == 404
    assert response.json()["detail"] == "This series has no rewards."


def test_reclamation_succes(client):
    with patch("halaqa.routers.participants.reward_service.claim_series_reward") as mock:
        mock.return_value = RewardClaimResponse(
            participant_id="p1",
            series_id="ramadan",
            claimed=[2],
            reward_status=make_reward_status(),
        )

        response = client.post(f"{BASE}/p1/series/ramadan/rewards/claim", json={"threshold": 2})

    assert response.status_code == 200
    assert response.json()["claimed"] == [2]
    assert mock.call_args.args[1:] == ("p1", "ramadan", 2)


def test_reclamation_seuil_non_atteint(client):
    with patch("halaqa.routers.participants.reward_service.claim_series_reward") as mock:
        mock.side_effect = ValueError("Reward not unlocked yet: 1/2 sessions attended.")

        response = client.post(f"{BASE}/p1/series/ramadan/rewards/claim", json={"threshold": 2})

    assert response.status_code == 409


def test_reclamation_seuil_negatif(client):
    response = client.post(f"{BASE}/p1/series/ramadan/rewards/claim", json={"threshold": 0})
    assert response.status_code == 422


# ============================================================
# Évolution d'avatar
# ============================================================

def test_evolution_avatar(client):
    with patch("halaqa.routers.participants.reward_service.evolve_avatar") as mock:
        mock.return_value = EvolutionResponse(
            participant_id="p1",
            avatar_id="robot-1",
            form_level=2,
            form_count=10,
            last_evolved_experience=3,
            can_evolve=False,
        )

        response = client.post(f"{BASE}/p1/avatar/evolve")

    assert response.status_code == 200
    assert response.json()["form_level"] == 2


def test_evolution_refusee(client):
    with patch("halaqa.routers.participants.reward_service.evolve_avatar") as mock:
        mock.side_effect = ValueError("Avatar cannot evolve yet.")

        response = client.post(f"{BASE}/p1/avatar/evolve")

    assert response.status_code == 400
    assert response.json()["detail"] == "Avatar cannot evolve yet."
