import asyncio
import json

import pytest

from holdem.models import ActionType
from host.server import ClientSession, HandServer, PendingAction, ServerConfig

from .helpers import scripted_deck


# Fake sockets so we can exercise async paths without opening real connections.
class DummyWebSocket:
    def __init__(self, inbox=None) -> None:
        self.sent: list[str] = []
        self.inbox: list[str] = list(inbox or [])
        self.closed = False

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def recv(self) -> str:
        return self.inbox.pop(0)

    async def close(self, *args, **kwargs) -> None:
        self.closed = True


def setup_server(num_players: int = 2, move_time_ms: int = 0) -> tuple[HandServer, list[ClientSession], list[DummyWebSocket]]:
    server = HandServer(ServerConfig(players=num_players, starting_stack=1_000, sb=10, bb=20, move_time_ms=move_time_ms))
    sessions: list[ClientSession] = []
    sockets: list[DummyWebSocket] = []
    for idx in range(num_players):
        player_id = f"Team{idx}"
        websocket = DummyWebSocket()
        session = ClientSession(player_id=player_id, websocket=websocket)
        server.roster[player_id] = server.config.starting_stack
        server.sessions[player_id] = session
        sessions.append(session)
        sockets.append(websocket)
    return server, sessions, sockets


def received(websocket: DummyWebSocket) -> list[dict]:
    return [json.loads(raw) for raw in websocket.sent]


def of_type(websocket: DummyWebSocket, msg_type: str) -> list[dict]:
    return [message for message in received(websocket) if message["type"] == msg_type]


def test_hand_starts_once_the_table_is_full():
    server, _, sockets = setup_server()
    asyncio.run(server._maybe_start_hand())

    assert server.game is not None
    assert server.hand_counter == 1
    assert server.hand_id.endswith("-00000")
    for websocket in sockets:
        start = of_type(websocket, "start_hand")
        assert len(start) == 1
        assert start[0]["v"] == 1
        assert start[0]["phase"] == "PRE_FLOP"
    events = [message["ev"] for message in of_type(sockets[1], "event")]
    assert events == ["POST_BLINDS", "HOLE_CARDS"]

    prompts = of_type(sockets[0], "act")
    assert len(prompts) == 1
    assert prompts[0]["you"]["id"] == "Team0"
    assert prompts[0]["call_amount"] == 10
    assert not of_type(sockets[1], "act")
    assert server.pending_action is None


def test_hand_waits_for_missing_players():
    server, _, sockets = setup_server(num_players=3)
    server.roster.pop("Team2")
    asyncio.run(server._maybe_start_hand())
    assert server.game is None
    assert sockets[0].sent == []


def test_handle_action_rejects_out_of_turn():
    server, sessions, sockets = setup_server()
    asyncio.run(server._maybe_start_hand())

    asyncio.run(server._handle_action(sessions[1], {"type": "action", "action": ActionType.CALL.value}))

    payload = received(sockets[1])[-1]
    assert payload["type"] == "error"
    assert payload["code"] == "OUT_OF_TURN"


@pytest.mark.parametrize(
    "message,code",
    [
        ({"type": "action", "action": "BET", "amount": 5}, "INVALID_ACTION"),
        ({"type": "action", "action": "RAISE"}, "INVALID_ACTION"),
        ({"type": "action", "action": "CHECK"}, "INVALID_ACTION"),
        ({"type": "action", "action": "BET"}, "BAD_SCHEMA"),
        ({"type": "action", "action": "BET", "amount": "lots"}, "BAD_SCHEMA"),
    ],
)
def test_handle_action_reports_rejected_moves(message, code):
    server, sessions, sockets = setup_server()
    asyncio.run(server._maybe_start_hand())
    stacks = [player.chips for player in server.game.players]

    asyncio.run(server._handle_action(sessions[0], message))

    payload = received(sockets[0])[-1]
    assert payload["type"] == "error"
    assert payload["code"] == code
    assert [player.chips for player in server.game.players] == stacks
    assert server.game.next_actor() == 0


def test_action_without_a_hand_is_rejected():
    server, sessions, sockets = setup_server()
    asyncio.run(server._handle_action(sessions[0], {"type": "action", "action": "CHECK"}))
    assert received(sockets[0])[-1]["code"] == "NO_HAND"


def test_fold_ends_the_hand_and_starts_the_next():
    server, sessions, sockets = setup_server()
    asyncio.run(server._maybe_start_hand())

    asyncio.run(server._handle_action(sessions[0], {"type": "action", "action": "FOLD"}))

    end = of_type(sockets[0], "end_hand")
    assert len(end) == 1
    assert end[0]["winnings"] == {"Team1": 30}
    assert end[0]["net"] == {"Team0": -10, "Team1": 10}
    assert end[0]["stacks"] == {"Team0": 990, "Team1": 1_010}
    assert server.roster == {"Team0": 990, "Team1": 1_010}

    # Button moved: Team1 deals and posts the small blind heads-up.
    assert server.hand_counter == 2
    assert server.dealer_pos == 1
    assert server.game is not None
    assert server.game.players[1].current_bet == 10
    assert of_type(sockets[1], "act")[-1]["you"]["id"] == "Team1"


def test_disconnected_actor_is_folded():
    server, _, sockets = setup_server()
    asyncio.run(server._maybe_start_hand())

    server.sessions.pop("Team0")
    asyncio.run(server._handle_disconnect("Team0"))

    assert "Team0" in server.disconnected
    assert server.roster == {"Team0": 990, "Team1": 1_010}
    # Only one connected player remains, so no new hand starts.
    assert server.game is None
    assert of_type(sockets[1], "end_hand")[0]["winnings"] == {"Team1": 30}


def test_timer_expired_checks_when_free(monkeypatch):
    server, _, _ = setup_server()
    asyncio.run(server._maybe_start_hand())
    server.game.act(ActionType.CALL)

    events: list[dict[str, object]] = []

    async def capture_events(payload):
        events.extend(payload)

    async def noop_prompt():
        return None

    monkeypatch.setattr(server, "_broadcast_events", capture_events)
    monkeypatch.setattr(server, "_prompt_next_actor", noop_prompt)

    server.pending_action = PendingAction(player_id="Team1", deadline=1.0)
    asyncio.run(server._timer_expired("Team1", 1.0))

    assert events
    assert events[0]["ev"] == "CHECK"
    assert server.pending_action is None


def test_timer_expired_folds_when_facing_a_bet(monkeypatch):
    server, _, _ = setup_server()
    asyncio.run(server._maybe_start_hand())

    events: list[dict[str, object]] = []

    async def capture_events(payload):
        events.extend(payload)

    async def noop_prompt():
        return None

    monkeypatch.setattr(server, "_broadcast_events", capture_events)
    monkeypatch.setattr(server, "_prompt_next_actor", noop_prompt)

    server.pending_action = PendingAction(player_id="Team0", deadline=1.0)
    asyncio.run(server._timer_expired("Team0", 1.0))

    assert events[0]["ev"] == "FOLD"
    assert server.game.is_hand_complete()


def test_stale_timer_is_ignored():
    server, _, _ = setup_server()
    asyncio.run(server._maybe_start_hand())
    pending = PendingAction(player_id="Team0", deadline=1.0)
    server.pending_action = pending

    asyncio.run(server._timer_expired("Team0", 2.0))

    assert server.pending_action is pending
    assert not server.game.players[0].folded


def test_schedule_timer_disabled_when_move_time_zero():
    server, _, _ = setup_server(move_time_ms=0)
    asyncio.run(server._maybe_start_hand())

    asyncio.run(server._schedule_timer("Team0"))

    assert server.pending_action is None


def test_match_ends_when_one_player_holds_every_chip(monkeypatch):
    deck = ["As", "Ks", "Ad", "Kd", "2h", "7c", "9s", "Jc", "4h"]
    monkeypatch.setattr("holdem.phase.build_deck", lambda seed=None: scripted_deck(deck))
    server, sessions, sockets = setup_server()
    asyncio.run(server._maybe_start_hand())

    asyncio.run(server._handle_action(sessions[0], {"type": "action", "action": "BET", "amount": 990}))
    asyncio.run(server._handle_action(sessions[1], {"type": "action", "action": "CALL"}))

    assert server.roster == {"Team0": 2_000, "Team1": 0}
    assert server.game is None
    match_end = of_type(sockets[1], "match_end")
    assert len(match_end) == 1
    assert match_end[0]["stacks"] == {"Team0": 2_000, "Team1": 0}
    showdown = [message for message in of_type(sockets[0], "event") if message["ev"] == "SHOWDOWN"]
    assert showdown


def test_connection_without_hello_is_refused():
    server, _, _ = setup_server()
    websocket = DummyWebSocket(inbox=[json.dumps({"type": "action", "action": "CHECK"})])

    asyncio.run(server._handle_connection(websocket))

    assert received(websocket)[-1]["code"] == "BAD_HELLO"
    assert websocket.closed


def test_connection_refused_when_table_is_full():
    server, _, _ = setup_server()
    websocket = DummyWebSocket(inbox=[json.dumps({"type": "hello", "player": "Latecomer"})])

    asyncio.run(server._handle_connection(websocket))

    assert received(websocket)[-1]["code"] == "TABLE_FULL"
    assert websocket.closed
    assert "Latecomer" not in server.roster


class LiveWebSocket(DummyWebSocket):
    """Stays open until closed, like a real connection with no traffic."""

    def __init__(self, inbox=None) -> None:
        super().__init__(inbox)
        self.closed_event = asyncio.Event()

    async def close(self, *args, **kwargs) -> None:
        self.closed = True
        self.closed_event.set()

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        await self.closed_event.wait()
        raise StopAsyncIteration


def test_reconnect_replaces_the_session_without_a_disconnect():
    server = HandServer(ServerConfig(players=2, move_time_ms=0))
    hello = json.dumps({"type": "hello", "player": "Team0"})

    async def scenario():
        first = LiveWebSocket(inbox=[hello])
        first_task = asyncio.create_task(server._handle_connection(first))
        while "Team0" not in server.sessions:
            await asyncio.sleep(0)

        second = LiveWebSocket(inbox=[hello])
        second_task = asyncio.create_task(server._handle_connection(second))
        await first_task

        assert first.closed
        assert server.sessions["Team0"].websocket is second
        assert "Team0" not in server.disconnected

        await second.close()
        await second_task

    asyncio.run(scenario())
    assert "Team0" not in server.sessions
    assert "Team0" in server.disconnected
    assert server.roster == {"Team0": 1_000}
