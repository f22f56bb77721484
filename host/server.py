from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

import websockets
from websockets.asyncio.server import ServerConnection, serve

from holdem.game import PokerGame
from holdem.models import ActionType, HandConfig, Player

LOGGER = logging.getLogger("poker_host")

# HandServer glues the hand engine to WebSocket clients. Every network
# concern lives here; the engine stays synchronous and is only touched
# while holding self.lock.


@dataclass
class ServerConfig:
    players: int = 2
    starting_stack: int = 1_000
    sb: int = 10
    bb: int = 20
    move_time_ms: int = 15_000

    def __post_init__(self) -> None:
        if self.players < 2:
            raise ValueError("A table needs at least two players")
        if self.starting_stack <= 0:
            raise ValueError("Starting stack must be positive")


@dataclass
class ClientSession:
    player_id: str
    websocket: ServerConnection


@dataclass
class PendingAction:
    player_id: str
    deadline: float
    timer_task: Optional[asyncio.Task] = None


class HandServer:
    def __init__(self, config: ServerConfig) -> None:
        self.config = config
        # Seat order is join order; chip balances persist between hands here,
        # the engine only sees them for the duration of one hand.
        self.roster: Dict[str, int] = {}
        self.sessions: Dict[str, ClientSession] = {}
        self.disconnected: Set[str] = set()
        self.game: Optional[PokerGame] = None
        self.hand_id: Optional[str] = None
        self.hand_counter = 0
        self.dealer_pos = 0
        self.pending_action: Optional[PendingAction] = None
        self.lock = asyncio.Lock()

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with serve(self._handle_connection, host, port):
            LOGGER.info("Hand server listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        # First message must be "hello" so we know who we are talking to.
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        player_raw = hello.get("player")
        player_id = player_raw.strip() if isinstance(player_raw, str) else ""
        if not player_id:
            await self._send_error(websocket, code="BAD_HELLO", msg="player required")
            await websocket.close()
            return

        async with self.lock:
            if player_id not in self.roster and len(self.roster) >= self.config.players:
                table_full = True
            else:
                table_full = False
                self.roster.setdefault(player_id, self.config.starting_stack)
                self.disconnected.discard(player_id)
        if table_full:
            await self._send_error(websocket, code="TABLE_FULL", msg="No seats available")
            await websocket.close()
            return

        # A handler only reports a disconnect for the session it still owns.
        session = ClientSession(player_id=player_id, websocket=websocket)
        previous = self.sessions.get(player_id)
        self.sessions[player_id] = session
        if previous:
            await previous.websocket.close(code=4000, reason="Replaced by new connection")
        LOGGER.info("Player %s connected (chips=%s)", player_id, self.roster[player_id])

        await self._send_json(
            websocket,
            "welcome",
            {
                "player": player_id,
                "seat": list(self.roster).index(player_id),
                "config": {
                    "players": self.config.players,
                    "starting_stack": self.config.starting_stack,
                    "sb": self.config.sb,
                    "bb": self.config.bb,
                    "move_time_ms": self.config.move_time_ms,
                },
            },
        )
        await self._maybe_start_hand()

        try:
            async for raw in websocket:
                message = self._decode(raw)
                if message.get("type") == "action":
                    await self._handle_action(session, message)
                else:
                    await self._send_error(websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")
        except websockets.ConnectionClosed:
            pass
        finally:
            if self.sessions.get(player_id) is session:
                self.sessions.pop(player_id, None)
                await self._handle_disconnect(player_id)

    # Hand lifecycle --------------------------------------------------

    def _can_start_locked(self) -> bool:
        if self.game is not None or len(self.roster) < self.config.players:
            return False
        ready = [
            player_id
            for player_id, chips in self.roster.items()
            if chips > 0 and player_id in self.sessions and player_id not in self.disconnected
        ]
        return len(ready) >= 2

    def _next_dealer_locked(self, start: int) -> int:
        seats = list(self.roster.values())
        for step in range(len(seats)):
            idx = (start + step) % len(seats)
            if seats[idx] > 0:
                return idx
        return start

    async def _maybe_start_hand(self) -> None:
        async with self.lock:
            if not self._can_start_locked():
                return
            self.dealer_pos = self._next_dealer_locked(self.dealer_pos)
            players = [Player(id=player_id, chips=chips) for player_id, chips in self.roster.items()]
            config = HandConfig(small_blind=self.config.sb, big_blind=self.config.bb, dealer_pos=self.dealer_pos)
            self.game = PokerGame(players, config)
            self.hand_id = f"H-{time.strftime('%Y%m%d')}-{self.hand_counter:05d}"
            self.hand_counter += 1
            events = self.game.start()
            start_payload = {"hand_id": self.hand_id, **self.game.snapshot()}
        LOGGER.info("Hand %s started (dealer seat %s)", self.hand_id, self.dealer_pos)

        await self._broadcast("start_hand", start_payload)
        await self._broadcast_events(events)
        await self._prompt_next_actor()

    def _actor_id_locked(self) -> Optional[str]:
        if self.game is None:
            return None
        pos = self.game.next_actor()
        return self.game.players[pos].id if pos is not None else None

    async def _prompt_next_actor(self) -> None:
        while True:
            session: Optional[ClientSession] = None
            payload: Optional[Dict[str, object]] = None
            events: List[Dict[str, object]] = []
            async with self.lock:
                if self.game is None:
                    return
                if self.game.is_hand_complete():
                    break
                player_id = self._actor_id_locked()
                if player_id is None:
                    return
                session = self.sessions.get(player_id)
                if session is not None and player_id not in self.disconnected:
                    payload = self.game.act_payload()
                    payload["hand_id"] = self.hand_id
                    payload["time_ms"] = self.config.move_time_ms
                else:
                    # Absent players are folded out rather than waited on.
                    events = self.game.act(ActionType.FOLD)
            if payload is not None and session is not None:
                await self._send_json(session.websocket, "act", payload)
                await self._schedule_timer(session.player_id)
                return
            LOGGER.info("Player %s is not connected; folded", player_id)
            await self._broadcast_events(events)
        await self._finish_hand()

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        action_name = message.get("action")
        amount = message.get("amount")

        async with self.lock:
            if self.game is None or self.game.is_hand_complete():
                await self._send_error(session.websocket, code="NO_HAND", msg="No hand in progress")
                return
            if self._actor_id_locked() != session.player_id:
                await self._send_error(session.websocket, code="OUT_OF_TURN", msg="Not your turn")
                return
            try:
                action = ActionType(action_name)
            except ValueError:
                await self._send_error(session.websocket, code="INVALID_ACTION", msg="Unknown action")
                return
            if action == ActionType.BET and not isinstance(amount, int):
                await self._send_error(session.websocket, code="BAD_SCHEMA", msg="amount required for bet")
                return

            try:
                events = self.game.act(action, amount if action == ActionType.BET else None)
            except ValueError as exc:
                LOGGER.warning(
                    "Rejected action player=%s action=%s amount=%s reason=%s",
                    session.player_id,
                    action,
                    amount,
                    exc,
                )
                await self._send_error(session.websocket, code="INVALID_ACTION", msg=str(exc))
                return
            self._cancel_timer_locked()

        LOGGER.debug("Applied action hand=%s player=%s action=%s amount=%s", self.hand_id, session.player_id, action, amount)
        await self._broadcast_events(events)
        await self._prompt_next_actor()

    async def _handle_disconnect(self, player_id: str) -> None:
        events: List[Dict[str, object]] = []
        async with self.lock:
            self.disconnected.add(player_id)
            if self.game is not None and not self.game.is_hand_complete() and self._actor_id_locked() == player_id:
                self._cancel_timer_locked()
                events = self.game.act(ActionType.FOLD)
        LOGGER.info("Player %s disconnected", player_id)
        if events:
            await self._broadcast_events(events)
            await self._prompt_next_actor()

    async def _finish_hand(self) -> None:
        async with self.lock:
            game = self.game
            if game is None or not game.is_hand_complete():
                return
            winnings = game.winnings()
            for player in game.players:
                self.roster[player.id] = player.chips
            end_payload = {
                "hand_id": self.hand_id,
                "winnings": winnings,
                "net": game.net_results(),
                "stacks": dict(self.roster),
            }
            self.game = None
            self._cancel_timer_locked()
            self.dealer_pos = self._next_dealer_locked(self.dealer_pos + 1)
            match_over = sum(1 for chips in self.roster.values() if chips > 0) <= 1

        await self._broadcast("end_hand", end_payload)
        LOGGER.info("Hand %s finished; winnings=%s", end_payload["hand_id"], winnings)
        if match_over:
            await self._broadcast("match_end", {"stacks": end_payload["stacks"]})
            LOGGER.info("Match over: %s", end_payload["stacks"])
            return
        await self._maybe_start_hand()

    # Move timer ------------------------------------------------------

    async def _schedule_timer(self, player_id: str) -> None:
        async with self.lock:
            self._cancel_timer_locked()
            if self.config.move_time_ms <= 0:
                return
            deadline = time.monotonic() + self.config.move_time_ms / 1000
            task = asyncio.create_task(self._timer_wait(player_id, deadline))
            self.pending_action = PendingAction(player_id=player_id, deadline=deadline, timer_task=task)

    async def _timer_wait(self, player_id: str, deadline: float) -> None:
        await asyncio.sleep(max(0.0, deadline - time.monotonic()))
        await self._timer_expired(player_id, deadline)

    async def _timer_expired(self, player_id: str, deadline: float) -> None:
        async with self.lock:
            pending = self.pending_action
            if pending is None or pending.player_id != player_id or pending.deadline != deadline:
                return
            self.pending_action = None
            if self.game is None or self._actor_id_locked() != player_id:
                return
            events = self.game.fallback_action()
        LOGGER.info("Move timer expired for %s", player_id)
        await self._broadcast_events(events)
        await self._prompt_next_actor()

    def _cancel_timer_locked(self) -> None:
        if self.pending_action and self.pending_action.timer_task:
            self.pending_action.timer_task.cancel()
        self.pending_action = None

    # Messaging -------------------------------------------------------

    async def _broadcast(self, msg_type: str, payload: Dict[str, object]) -> None:
        async with self.lock:
            targets = [session.websocket for session in self.sessions.values()]
        if not targets:
            return
        message = self._envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    async def _broadcast_events(self, events: List[Dict[str, object]]) -> None:
        for event in events:
            await self._broadcast("event", {"hand_id": self.hand_id, **event})

    async def _send_json(self, websocket: ServerConnection, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: ServerConnection, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body: Dict[str, object] = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: ServerConnection) -> Optional[Dict[str, object]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: str) -> Dict[str, object]:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return message if isinstance(message, dict) else {}
