from __future__ import annotations

import hmac
import random
import time
import uuid
from threading import RLock
from typing import Callable, Dict, Optional, Tuple

from .categories import CategorySelector, clean_category
from .errors import (
    AlreadyActed,
    EmptyInput,
    InvalidNickname,
    NicknameTaken,
    NotAuthorized,
    PersistenceFailure,
    PlayerNotFound,
    RoomNotFound,
    WrongPhase,
)
from .identity import IdentityRegistry
from .phases import PhaseController
from .state import (
    ENDED,
    LOBBY,
    ROOM_CODE_ALPHABET,
    SUBMITTING,
    VOTING,
    WAITING_FOR_CATEGORY,
    Player,
    Room,
    Submission,
    TimerSettings,
)
from .store import GameStore
from .timers import TimerDriver


def normalize_code(code) -> str:
    return str(code or '').strip().upper()


class GameService:
    """Owns every live room and connection binding for one application.

    Socket handlers and timer ticks all enter through methods guarded by one
    re-entrant lock, so room state is only ever touched by one caller at a
    time. Errors meant for the acting connection are raised as ``GameError``.
    """

    def __init__(self, app, gateway, store=None, clock: Callable[[], float] = time.time,
                 rng: Optional[random.Random] = None, socketio=None, sync=None):
        self.app = app
        self.config = app.config
        self.logger = app.logger
        self.gateway = gateway
        self.clock = clock
        self.rng = rng or random.Random()
        self.store = store or GameStore(app.logger)
        self.sync = sync
        self.rooms: Dict[str, Room] = {}
        self.identity = IdentityRegistry(self.rooms)
        self.categories = CategorySelector(self.store, self.rng)
        self.phases = PhaseController(self)
        self._lock = RLock()
        self.driver = None
        if socketio is not None:
            self.driver = TimerDriver(socketio, app, self.tick,
                                      interval=float(self.config.get('TICK_INTERVAL_SEC', 1.0)))

    def persist(self, fn, *args, **kwargs):
        """Run a store call; a failure is already logged and only costs the record."""
        try:
            result = fn(*args, **kwargs)
        except PersistenceFailure:
            return None
        if self.sync is not None:
            self.sync.mark_dirty()
        return result

    def _ensure_driver(self) -> None:
        if self.driver is not None and self.config.get('TIMER_DRIVER_ENABLED', True):
            self.driver.start()

    def _generate_code(self) -> str:
        while True:
            code = ''.join(self.rng.choices(ROOM_CODE_ALPHABET, k=4))
            if code not in self.rooms:
                return code

    def _room(self, code) -> Room:
        room = self.rooms.get(normalize_code(code))
        if room is None:
            raise RoomNotFound()
        return room

    def _acting_player(self, connection_id) -> Tuple[Room, Player]:
        player = self.identity.resolve_player(connection_id)
        room = self.identity.resolve_room(connection_id)
        if player is None or room is None:
            raise PlayerNotFound('Not in a room')
        return room, player

    def _host_room(self, connection_id, gm_only=False) -> Room:
        room = self.identity.resolve_room(connection_id)
        if room is None:
            raise NotAuthorized()
        allowed = {room.gm_connection_id} if gm_only else {room.gm_connection_id, room.display_connection_id}
        if connection_id not in allowed:
            raise NotAuthorized()
        return room

    def _clean_category(self, text) -> str:
        category = clean_category(text if isinstance(text, str) else '')
        if not category:
            raise EmptyInput('Category cannot be empty')
        if len(category) > int(self.config.get('CATEGORY_MAX_LENGTH', 50)):
            raise EmptyInput('Invalid category')
        return category

    # ========== room lifecycle ==========

    def create_room(self, connection_id) -> Room:
        with self._lock:
            # A connection hosts one room; an earlier room is left as if its GM disconnected
            self._release_connection(connection_id)
            code = self._generate_code()
            room = Room(
                code=code,
                created_at=self.clock(),
                timer_settings=TimerSettings.from_config(self.config),
                gm_connection_id=connection_id,
                gm_token=uuid.uuid4().hex,
            )
            room.game_id = self.persist(self.store.create_game, code, connection_id)
            if room.game_id is not None:
                self.persist(self.categories.seed_presets, room.game_id)
            self.rooms[code] = room

            self.gateway.join_room_channel(connection_id, code)
            self.gateway.emit_to_connection(connection_id, 'room-created', {'code': code, 'gmToken': room.gm_token})
            self.logger.info(f"[room-created] room={code} game={room.game_id} gm={connection_id}")
            self._ensure_driver()
            return room

    def join_room(self, connection_id, code, nickname) -> Player:
        with self._lock:
            room = self._room(code)
            nickname = (nickname if isinstance(nickname, str) else '').strip()
            if not nickname:
                raise InvalidNickname()
            if room.nickname_taken(nickname):
                raise NicknameTaken()

            player_id = str(uuid.uuid4())
            player = Player(player_id=player_id, nickname=nickname, connection_id=connection_id)
            if room.game_id is not None:
                player.db_id = self.persist(self.store.add_player, room.game_id, player_id, connection_id, nickname)
            room.players[player_id] = player
            self.identity.bind(connection_id, room.code, player_id)
            self.gateway.join_room_channel(connection_id, room.code)

            self.gateway.emit_to_connection(connection_id, 'join-success', {
                'code': room.code,
                'playerId': player_id,
                'nickname': nickname,
            })
            self.phases.broadcast_state(room)
            self.phases.emit_to_display(room, 'player-joined', {'nickname': nickname})
            self.logger.info(f"[player-joined] room={room.code} nickname={nickname!r} player={player_id}")
            return player

    def join_display(self, connection_id, code) -> Room:
        with self._lock:
            room = self._room(code)
            room.display_connection_id = connection_id
            self.gateway.join_room_channel(connection_id, room.code)
            self.gateway.emit_to_connection(connection_id, 'display-connected', {'code': room.code})
            self.phases.update_display(room)
            self.logger.info(f"[display-joined] room={room.code}")
            return room

    def reconnect(self, connection_id, code, player_id) -> Player:
        with self._lock:
            room = self._room(code)
            player = room.players.get(player_id)
            restored = player is None
            if restored:
                player = self._rehydrate(room, player_id)
            if room.nickname_taken(player.nickname, exclude=player):
                raise NicknameTaken()
            if restored:
                room.players[player.player_id] = player
                self.logger.info(f"[player-restored] room={room.code} nickname={player.nickname!r} score={player.score}")

            player.connection_id = connection_id
            player.is_connected = True
            player.disconnected_at = None
            self.identity.bind(connection_id, room.code, player.player_id)
            self.gateway.join_room_channel(connection_id, room.code)
            self.persist(self.store.set_player_connected, player.player_id, True, connection_id)

            self.phases.resync_timer(room)

            payload = room.public_state()
            payload.update({
                'playerId': player.player_id,
                'nickname': player.nickname,
                'score': player.score,
                'hasSubmitted': player.has_submitted,
                'hasVoted': player.has_voted,
            })
            payload.pop('timer', None)
            remaining = self.phases.remaining_time(room)
            if remaining > 0:
                payload['timer'] = {'remaining': remaining, 'phase': room.timer_state['phase']}
            self.gateway.emit_to_connection(connection_id, 'reconnect-success', payload)
            if remaining > 0:
                self.gateway.emit_to_connection(connection_id, 'timer-update', {
                    'remaining': remaining,
                    'phase': room.timer_state['phase'],
                    'gameState': room.phase,
                })

            notice = {'nickname': player.nickname}
            self.phases.emit_to_players(room, 'player-reconnected', notice, exclude=connection_id)
            if room.gm_connection_id:
                self.gateway.emit_to_connection(room.gm_connection_id, 'player-reconnected', notice)
            self.phases.emit_to_display(room, 'player-reconnected', notice)
            self.phases.broadcast_state(room)
            self.logger.info(f"[player-reconnected] room={room.code} nickname={player.nickname!r}")
            return player

    def _rehydrate(self, room: Room, player_id) -> Player:
        record = None
        if room.game_id is not None and player_id:
            record = self.persist(self.store.find_player, room.game_id, player_id)
        if record is None:
            raise PlayerNotFound()
        player = Player(
            player_id=record.player_uid,
            nickname=record.nickname,
            db_id=record.id,
            score=record.final_score or 0,
        )
        # Flags follow whatever the current round already holds for this player
        player.has_submitted = any(s.player_id == player.player_id for s in room.submissions)
        player.has_voted = room.phase == VOTING and any(player.player_id in s.votes for s in room.submissions)
        return player

    def reconnect_gm(self, connection_id, code, gm_token) -> Room:
        with self._lock:
            room = self._room(code)
            if not gm_token or not hmac.compare_digest(str(gm_token), room.gm_token):
                raise NotAuthorized()
            room.gm_connection_id = connection_id
            if room.phase != ENDED:
                room.expires_at = None
            self.gateway.join_room_channel(connection_id, room.code)
            self.gateway.emit_to_connection(connection_id, 'gm-reconnected', room.public_state())
            self.phases.emit_to_players(room, 'gm-reconnected')
            self.logger.info(f"[gm-reconnected] room={room.code}")
            return room

    def disconnect(self, connection_id) -> None:
        with self._lock:
            self._release_connection(connection_id)

    def _release_connection(self, connection_id) -> None:
        """Drop every role the connection holds: player, GM or display, in any room."""
        binding = self.identity.unbind(connection_id)
        if binding:
            room = self.rooms.get(binding[0])
            player = room.players.get(binding[1]) if room else None
            if player is not None and player.connection_id == connection_id:
                self._mark_disconnected(room, player)

        for room in list(self.rooms.values()):
            if room.gm_connection_id == connection_id:
                room.gm_connection_id = None
                self.phases.emit_to_players(room, 'gm-disconnected')
                if room.phase != ENDED:
                    room.expires_at = self.clock() + int(self.config.get('GM_GRACE_SEC', 300))
                self.logger.info(f"[gm-disconnected] room={room.code}")

            if room.display_connection_id == connection_id:
                room.display_connection_id = None
                self.logger.info(f"[display-disconnected] room={room.code}")

    def _mark_disconnected(self, room: Room, player: Player) -> None:
        player.is_connected = False
        player.connection_id = None
        player.disconnected_at = self.clock()
        self.persist(self.store.set_player_connected, player.player_id, False)
        self.phases.broadcast_state(room)
        self.phases.emit_to_display(room, 'player-left', {'nickname': player.nickname})
        self.logger.info(f"[player-disconnected] room={room.code} nickname={player.nickname!r}")
        # The remaining players may now all be done
        if room.phase == SUBMITTING:
            self.phases.check_submissions_complete(room)
        elif room.phase == VOTING:
            self.phases.check_votes_complete(room)

    def delete_room(self, room: Room, reason: str) -> None:
        with self._lock:
            self.phases.cancel_timer(room)
            self.identity.unbind_room(room.code)
            self.rooms.pop(room.code, None)
            if room.phase != ENDED and room.game_id is not None:
                self.persist(self.store.finish_game, room.game_id, 'abandoned', room.round)
            self.logger.info(f"[room-deleted] room={room.code} reason={reason}")

    # ========== player and host actions ==========

    def submit_category(self, connection_id, text) -> str:
        with self._lock:
            room, player = self._acting_player(connection_id)
            if room.phase not in (LOBBY, WAITING_FOR_CATEGORY):
                raise WrongPhase('Not in lobby phase')
            category = self._clean_category(text)
            if room.game_id is not None:
                self.persist(self.categories.submit, room.game_id, player.db_id, category)
            room.category_submissions.append({
                'playerId': player.player_id,
                'nickname': player.nickname,
                'category': category,
            })
            self.gateway.emit_to_connection(connection_id, 'category-submitted', {'category': category})
            self.phases.emit_to_display(room, 'categories-update', {'categorySubmissions': room.category_submissions})
            self.logger.info(f"[category] room={room.code} {player.nickname!r} submitted {category!r}")
            return category

    def host_add_category(self, connection_id, text) -> str:
        with self._lock:
            room = self._host_room(connection_id)
            if room.phase == ENDED:
                raise WrongPhase('Game has ended')
            category = self._clean_category(text)
            if room.game_id is not None:
                self.persist(self.categories.submit, room.game_id, None, category)
            room.category_submissions.append({'playerId': 'host', 'nickname': 'Host', 'category': category})
            self.gateway.emit_to_connection(connection_id, 'category-added', {'category': category})
            update = {'categorySubmissions': room.category_submissions}
            self.phases.emit_to_display(room, 'categories-update', update)
            if connection_id != room.display_connection_id:
                self.gateway.emit_to_connection(connection_id, 'categories-update', update)
            self.logger.info(f"[category] room={room.code} host added {category!r}")
            return category

    def start_game(self, connection_id) -> None:
        with self._lock:
            room = self._host_room(connection_id)
            self.phases.start_game(room)

    def submit_exemplar(self, connection_id, text) -> Submission:
        with self._lock:
            room, player = self._acting_player(connection_id)
            if room.phase != SUBMITTING:
                raise WrongPhase('Not in submission phase')
            if player.has_submitted:
                raise AlreadyActed('Already submitted')
            exemplar = (text if isinstance(text, str) else '').strip()
            if not exemplar:
                raise EmptyInput('Exemplar cannot be empty')

            submission = Submission(player_id=player.player_id, nickname=player.nickname, exemplar=exemplar)
            if room.round_db_id is not None and player.db_id is not None:
                submission.db_id = self.persist(self.store.log_submission, room.round_db_id, player.db_id, exemplar)
            room.submissions.append(submission)
            player.has_submitted = True

            self.gateway.emit_to_connection(connection_id, 'submission-confirmed', {'exemplar': exemplar})
            self.phases.broadcast_state(room)
            self.logger.info(f"[submission] room={room.code} {player.nickname!r} submitted {exemplar!r}")
            self.phases.check_submissions_complete(room)
            return submission

    def submit_votes(self, connection_id, votes) -> None:
        with self._lock:
            room, player = self._acting_player(connection_id)
            if room.phase != VOTING:
                raise WrongPhase('Not in voting phase')
            if player.has_voted:
                raise AlreadyActed('Already voted')
            if isinstance(votes, list):
                votes = dict(enumerate(votes))
            elif not isinstance(votes, dict):
                votes = {}

            for key, vote in votes.items():
                try:
                    index = int(key)
                except (TypeError, ValueError):
                    continue
                if not 0 <= index < len(room.submissions):
                    continue
                submission = room.submissions[index]
                submission.votes[player.player_id] = bool(vote)
                if submission.db_id is not None and player.db_id is not None:
                    self.persist(self.store.log_vote, submission.db_id, player.db_id, bool(vote))
            player.has_voted = True

            self.phases.broadcast_state(room)
            self.logger.info(f"[vote] room={room.code} {player.nickname!r} voted")
            self.phases.check_votes_complete(room)

    def end_game(self, connection_id) -> None:
        with self._lock:
            room = self._host_room(connection_id, gm_only=True)
            self.phases.end_game(room)

    # ========== timers and grace periods ==========

    def tick(self) -> None:
        """Advance every active room timer by one second, then sweep grace periods."""
        with self._lock:
            for room in list(self.rooms.values()):
                if room.timer is not None and room.timer.is_active:
                    room.timer.tick()
            self.sweep()
        if self.sync is not None:
            self.sync.upload_if_due(self.clock())

    def sweep(self) -> None:
        with self._lock:
            now = self.clock()
            player_grace = int(self.config.get('PLAYER_GRACE_SEC', 600))
            for room in list(self.rooms.values()):
                if room.expires_at is not None and now >= room.expires_at:
                    reason = 'ended' if room.phase == ENDED else 'gm-grace-expired'
                    self.delete_room(room, reason)
                    continue
                purged = [
                    p for p in room.players.values()
                    if not p.is_connected and p.disconnected_at is not None
                    and now - p.disconnected_at >= player_grace
                ]
                for player in purged:
                    room.players.pop(player.player_id, None)
                    self.identity.unbind_player(room.code, player.player_id)
                    self.logger.info(f"[player-purged] room={room.code} nickname={player.nickname!r}")
                if purged:
                    self.phases.broadcast_state(room)

    # ========== read-only views ==========

    def room_state(self, code) -> Optional[dict]:
        with self._lock:
            room = self.rooms.get(normalize_code(code))
            return room.public_state() if room else None

    def list_rooms(self) -> list:
        with self._lock:
            return [
                {
                    'code': room.code,
                    'phase': room.phase,
                    'round': room.round,
                    'players': len(room.players),
                    'connectedPlayers': len(room.connected_players()),
                }
                for room in self.rooms.values()
            ]

    def shutdown(self) -> None:
        """Stop ticking and record every live game as interrupted."""
        if self.driver is not None:
            self.driver.stop()
        with self._lock, self.app.app_context():
            for room in list(self.rooms.values()):
                self.phases.cancel_timer(room)
                if room.phase != ENDED and room.game_id is not None:
                    self.persist(self.store.finish_game, room.game_id, 'interrupted', room.round)
            self.logger.info(f"[shutdown] flushed {len(self.rooms)} rooms")
        if self.sync is not None:
            self.sync.upload()
