from contextlib import ExitStack

import pytest
from fastapi.testclient import TestClient

from app.settings import Settings
from main import create_app


@pytest.fixture()
def client():
    app = create_app(Settings(SHUFFLE_SEED=7, ORIGIN="http://localhost:3000"))
    # one portal for every socket so all rooms share the app's event loop
    with TestClient(app) as test_client:
        yield test_client


def connect(stack, client):
    ws = stack.enter_context(client.websocket_connect("/ws"))
    hello = ws.receive_json()
    assert hello["type"] == "connected"
    return ws, hello["payload"]["playerId"]


def join(ws, room_id, name):
    ws.send_json({"type": "join-room", "roomId": room_id, "playerName": name})


def legal_for(hand, lead_suit):
    following = [card["id"] for card in hand if card["suit"] == lead_suit]
    return following or [card["id"] for card in hand]


def test_rooms_endpoint_empty_and_unknown_room(client):
    r = client.get("/api/rooms")
    assert r.status_code == 200
    assert r.json() == []

    missing = client.get("/api/rooms/nope")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "room_not_found"


def test_join_is_visible_over_rest(client):
    with ExitStack() as stack:
        ws, pid = connect(stack, client)
        join(ws, "lobby", "Alice")
        joined = ws.receive_json()
        assert joined == {"type": "joined-room", "payload": {"roomId": "lobby", "playerId": pid, "seat": 0}}
        assert ws.receive_json()["type"] == "game-update"

        rooms = client.get("/api/rooms").json()
        assert rooms == [{"roomId": "lobby", "players": 1, "gameState": "waiting", "round": 0, "tokens": [0, 0]}]
        state = client.get("/api/rooms/lobby").json()
        assert state["players"][0]["name"] == "Alice"
        assert state["players"][0]["handSize"] == 0


def test_four_players_start_and_play(client):
    with ExitStack() as stack:
        sockets = [connect(stack, client) for _ in range(4)]
        for idx, (ws, pid) in enumerate(sockets):
            join(ws, "table", f"P{idx}")
            assert ws.receive_json()["payload"] == {"roomId": "table", "playerId": pid, "seat": idx}
            update = ws.receive_json()
            assert update["type"] == "game-update"
            assert len(update["payload"]["players"]) == idx + 1
            for other, _ in sockets[:idx]:
                assert other.receive_json()["type"] == "game-update"

        hands = []
        state = None
        for ws, _ in sockets:
            assert ws.receive_json()["type"] == "game-started"
            state = ws.receive_json()["payload"]
            assert state["gameState"] == "playing"
            cards = ws.receive_json()
            assert cards["type"] == "your-cards"
            assert len(cards["payload"]["cards"]) == 8
            hands.append(cards["payload"]["cards"])

        all_ids = {card["id"] for hand in hands for card in hand}
        assert len(all_ids) == 32

        leader = state["currentPlayerIndex"]
        assert leader == state["trumpChooserIndex"] == 1

        # out of turn: private error, no broadcast
        outsider = (leader + 2) % 4
        sockets[outsider][0].send_json({"type": "play-card", "roomId": "table", "cardId": hands[outsider][0]["id"]})
        error = sockets[outsider][0].receive_json()
        assert error["type"] == "error"
        assert error["payload"]["code"] == "not_your_turn"

        lead_card = legal_for(hands[leader], None)[0]
        sockets[leader][0].send_json({"type": "play-card", "roomId": "table", "cardId": lead_card})
        mine = sockets[leader][0].receive_json()
        assert mine["type"] == "your-cards"
        assert lead_card not in {card["id"] for card in mine["payload"]["cards"]}
        for ws, _ in sockets:
            update = ws.receive_json()
            assert update["type"] == "game-update"
            assert update["payload"]["trick"][0]["card"]["id"] == lead_card
            assert update["payload"]["currentPlayerIndex"] == (leader + 1) % 4

        nxt = (leader + 1) % 4
        lead_suit = update["payload"]["leadSuit"]
        follow = legal_for(hands[nxt], lead_suit)[0]
        sockets[nxt][0].send_json({"type": "play-card", "roomId": "table", "cardId": follow})
        assert sockets[nxt][0].receive_json()["type"] == "your-cards"
        # the rejected play above produced nothing, so this is the next update everyone sees
        for ws, _ in sockets:
            update = ws.receive_json()
            assert update["type"] == "game-update"
            assert len(update["payload"]["trick"]) == 2


def test_fifth_connection_gets_room_full(client):
    with ExitStack() as stack:
        sockets = [connect(stack, client) for _ in range(4)]
        for idx, (ws, _) in enumerate(sockets):
            join(ws, "full", f"P{idx}")
            assert ws.receive_json()["type"] == "joined-room"
        extra, _ = connect(stack, client)
        join(extra, "full", "Late")
        message = extra.receive_json()
        assert message == {"type": "room-full", "payload": {"roomId": "full"}}


def test_bad_messages_get_error_and_keep_connection(client):
    with ExitStack() as stack:
        ws, _ = connect(stack, client)
        ws.send_text("not json")
        assert ws.receive_json()["payload"]["code"] == "bad_request"
        ws.send_json({"type": "dance"})
        assert ws.receive_json()["payload"]["code"] == "bad_request"
        ws.send_json({"type": "join-room", "roomId": "", "playerName": "X"})
        assert ws.receive_json()["payload"]["code"] == "bad_request"

        join(ws, "after-errors", "Still here")
        assert ws.receive_json()["type"] == "joined-room"


def test_disconnect_rebroadcasts_roster(client):
    with client.websocket_connect("/ws") as first:
        assert first.receive_json()["type"] == "connected"
        join(first, "den", "Stay")
        first.receive_json()
        first.receive_json()

        with client.websocket_connect("/ws") as second:
            assert second.receive_json()["type"] == "connected"
            join(second, "den", "Leave")
            second.receive_json()
            second.receive_json()
            assert len(first.receive_json()["payload"]["players"]) == 2

        update = first.receive_json()
        assert update["type"] == "game-update"
        assert [p["name"] for p in update["payload"]["players"]] == ["Stay"]


def test_binary_frame_is_rejected_and_seat_is_released_on_close(client):
    with client.websocket_connect("/ws") as first:
        first_id = first.receive_json()["payload"]["playerId"]
        join(first, "den", "Stay")
        first.receive_json()
        first.receive_json()

        with client.websocket_connect("/ws") as second:
            assert second.receive_json()["type"] == "connected"
            join(second, "den", "Ghost")
            second.receive_json()
            second.receive_json()
            first.receive_json()

            second.send_bytes(b"\x00")
            error = second.receive_json()
            assert error["type"] == "error"
            assert error["payload"]["code"] == "bad_request"
            names = [p["name"] for p in client.get("/api/rooms/den").json()["players"]]
            assert names == ["Stay", "Ghost"]

        update = first.receive_json()
        assert update["type"] == "game-update"
        assert [p["name"] for p in update["payload"]["players"]] == ["Stay"]
        assert list(client.app.state.hub.sockets) == [first_id]
