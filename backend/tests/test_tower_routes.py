"""Tests for the tower HTTP API."""

from tower.core.reward_formula import get_tower_reward


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_reward_preview(client):
    resp = await client.get("/api/tower/rewards/10")
    assert resp.status_code == 200
    data = resp.json()
    assert data["tier"] == "C"
    assert data["packs"] == 1
    assert data["gems"] == 50


async def test_reward_preview_invalid_floor(client):
    resp = await client.get("/api/tower/rewards/0")
    assert resp.status_code == 400
    assert "positive integer" in resp.json()["detail"]


async def test_progress(client, seed):
    user_id = await seed.user(current_floor=4)

    resp = await client.get("/api/tower/progress", params={"user_id": user_id})
    assert resp.status_code == 200
    assert resp.json() == {"current_floor": 4, "highest_completed": 3}


async def test_progress_unknown_user(client):
    resp = await client.get("/api/tower/progress", params={"user_id": "nobody"})
    assert resp.status_code == 404


async def test_floors_and_floor_details(client, seed):
    await seed.catalogue()
    for n in (1, 2, 3):
        await seed.floor(n)
    user_id = await seed.user(current_floor=1)

    resp = await client.get("/api/tower/floors", params={"user_id": user_id, "range": 1})
    assert resp.status_code == 200
    data = resp.json()
    assert data["max_available_floor"] == 3
    assert [f["floor_number"] for f in data["floors"]] == [1, 2]
    assert data["floors"][0]["reward_preview"]["gems"] == get_tower_reward(1).gems

    resp = await client.get("/api/tower/floor/3")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Floor 3"

    resp = await client.get("/api/tower/floor/4")
    assert resp.status_code == 404


async def test_complete_win_then_replay(client, seed):
    user_id = await seed.user(current_floor=1)
    body = {"floor_number": 1, "won": True}

    resp = await client.post("/api/tower/complete", params={"user_id": user_id}, json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["new_floor"] == 2
    assert data["rewards_earned"]["gems"] == 10

    resp = await client.post("/api/tower/complete", params={"user_id": user_id}, json=body)
    assert resp.status_code == 409
    assert resp.json()["current_floor"] == 2


async def test_complete_loss(client, seed):
    user_id = await seed.user(current_floor=3)

    resp = await client.post(
        "/api/tower/complete",
        params={"user_id": user_id},
        json={"floor_number": 3, "won": False},
    )
    assert resp.status_code == 200
    assert resp.json()["won"] is False
    assert resp.json()["new_floor"] is None

    user = await seed.get_user(user_id)
    assert user.current_floor == 3


async def test_start_and_complete_game(client, seed):
    await seed.catalogue()
    await seed.floor(1)
    user_id = await seed.user(current_floor=1)
    deck_id = await seed.player_deck(user_id)

    resp = await client.post(
        "/api/tower/start", params={"user_id": user_id}, json={"player_deck_id": deck_id}
    )
    assert resp.status_code == 201
    start = resp.json()
    assert start["floor_number"] == 1
    assert start["ai_deck_preview"] == {"name": "Floor 1 Deck", "card_count": 20}

    resp = await client.post(
        "/api/tower/complete",
        params={"user_id": user_id},
        json={"floor_number": 1, "won": True, "game_id": start["game_id"]},
    )
    assert resp.status_code == 200
    assert resp.json()["new_floor"] == 2


async def test_start_with_ai_deck(client, seed):
    await seed.catalogue()
    ai_deck_id = await seed.floor(1)
    user_id = await seed.user(current_floor=1)

    resp = await client.post(
        "/api/tower/start", params={"user_id": user_id}, json={"player_deck_id": ai_deck_id}
    )
    assert resp.status_code == 400
    assert resp.json()["reason"] == "ai_deck"


async def test_start_without_floor(client, seed):
    user_id = await seed.user(current_floor=1)

    resp = await client.post(
        "/api/tower/start", params={"user_id": user_id}, json={"player_deck_id": "x"}
    )
    assert resp.status_code == 404


async def test_complete_with_mismatched_game(client, seed):
    user_id = await seed.user(current_floor=2)
    game_id = await seed.game(user_id, floor_number=1, winner_id=user_id)

    resp = await client.post(
        "/api/tower/complete",
        params={"user_id": user_id},
        json={"floor_number": 2, "won": True, "game_id": game_id},
    )
    assert resp.status_code == 400
