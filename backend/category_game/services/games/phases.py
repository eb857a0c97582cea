from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .errors import GameError, NoCategories, WrongPhase
from .scoring import build_summary, score_round
from .state import ENDED, LOBBY, RESULTS, SUBMITTING, VOTING, WAITING_FOR_CATEGORY, Room
from .timers import GameTimer, PhaseSequence, SequenceStep

if TYPE_CHECKING:
    from .service import GameService


class PhaseController:
    """Drives a room through lobby -> submitting -> voting -> results -> next round.

    Every transition cancels the room's previous timer before starting the
    next one, so a room never has more than one live timer. Callers hold the
    service lock.
    """

    def __init__(self, service: "GameService"):
        self.service = service

    @property
    def gateway(self):
        return self.service.gateway

    @property
    def store(self):
        return self.service.store

    @property
    def logger(self):
        return self.service.logger

    # ========== timers ==========

    def start_timer(self, room: Room, timer) -> None:
        self.cancel_timer(room)
        room.timer = timer
        timer.start()

    def cancel_timer(self, room: Room) -> None:
        if room.timer is not None:
            room.timer.cancel()
        room.timer = None
        room.timer_state = None

    def _countdown(self, room: Room, duration: int, phase: str, on_complete) -> GameTimer:
        timer = GameTimer(
            duration,
            on_complete,
            on_tick=lambda remaining, label: self._on_tick(room, timer, remaining, label),
            phase=phase,
            clock=self.service.clock,
        )
        return timer

    def _start_countdown(self, room: Room, duration: int, phase: str, on_complete) -> None:
        timer = self._countdown(room, duration, phase, on_complete)
        self.start_timer(room, timer)
        if timer.is_active:
            room.timer_state = dict(timer.get_state(), game_state=room.phase)
        self.logger.info(f"[timer-set] room={room.code} phase={phase} duration={duration}s")

    def _on_tick(self, room: Room, timer: GameTimer, remaining: int, phase: str) -> None:
        if room.timer is not timer:
            return
        room.timer_state = dict(timer.get_state(), game_state=room.phase)
        self.gateway.emit_to_room(room.code, 'timer-update', {
            'remaining': remaining,
            'phase': phase,
            'gameState': room.phase,
        })

    def resync_timer(self, room: Room) -> None:
        """Align the live countdown with wall-clock time from its saved snapshot.

        If the snapshot says the time is already up, the phase completes now.
        """
        timer = room.timer
        state = room.timer_state
        if not isinstance(timer, GameTimer) or not state or not timer.is_active:
            return
        timer.restore_state(state)
        if room.timer is timer and timer.is_active:
            room.timer_state = dict(timer.get_state(), game_state=room.phase)

    def remaining_time(self, room: Room) -> int:
        state = room.timer_state
        if not state or not state.get('is_active') or state.get('timestamp') is None:
            return 0
        elapsed = int(self.service.clock() - state['timestamp'])
        return max(0, int(state['remaining']) - max(0, elapsed))

    # ========== broadcasts ==========

    def broadcast_state(self, room: Room, exclude: Optional[str] = None) -> None:
        payload = room.public_state()
        for player in room.connected_players():
            if player.connection_id and player.connection_id != exclude:
                self.gateway.emit_to_connection(player.connection_id, 'game-state-update', payload)
        if room.gm_connection_id and room.gm_connection_id != exclude:
            self.gateway.emit_to_connection(room.gm_connection_id, 'game-state-update', payload)
        self.update_display(room)

    def update_display(self, room: Room) -> None:
        if room.display_connection_id:
            self.gateway.emit_to_connection(room.display_connection_id, 'display-update', room.display_state())

    def emit_to_display(self, room: Room, event: str, payload: dict) -> None:
        if room.display_connection_id:
            self.gateway.emit_to_connection(room.display_connection_id, event, payload)

    def emit_to_players(self, room: Room, event: str, payload: Optional[dict] = None,
                        exclude: Optional[str] = None) -> None:
        for player in room.connected_players():
            if player.connection_id and player.connection_id != exclude:
                self.gateway.emit_to_connection(player.connection_id, event, payload or {})

    # ========== lobby -> submitting ==========

    def start_game(self, room: Room) -> None:
        if room.phase not in (LOBBY, WAITING_FOR_CATEGORY):
            raise WrongPhase('Game already in progress')
        min_players = int(self.service.config.get('MIN_PLAYERS', 2))
        if len(room.connected_players()) < min_players:
            raise GameError(f'Need at least {min_players} players to start')

        category = self.service.categories.select_next(room.game_id)
        if not category:
            raise NoCategories()

        if room.phase == LOBBY:
            room.round = 1
            if room.game_id is not None:
                self.service.persist(self.store.set_game_status, room.game_id, 'active')
        else:
            room.round = max(room.round, 1)
        self.begin_round(room, category)
        self.logger.info(f"[game-start] room={room.code} round={room.round} category={category!r}")

    def begin_round(self, room: Room, category: str) -> None:
        room.round_db_id = None
        if room.game_id is not None:
            room.round_db_id = self.service.persist(self.store.start_round, room.game_id, room.round, category)
        room.needs_more_categories = False
        self.begin_submission(room, category)

    def begin_submission(self, room: Room, category: str) -> None:
        room.phase = SUBMITTING
        room.category = category
        room.submissions = []
        room.results = []
        room.result_index = -1
        room.display_stage = None
        for player in room.players.values():
            player.reset_round()

        self._start_countdown(room, room.timer_settings.submission, 'submission',
                              lambda: self._submission_expired(room))
        self.broadcast_state(room)
        self.logger.info(f"[phase] room={room.code} submitting category={category!r}")

    def _submission_expired(self, room: Room) -> None:
        self.logger.info(f"[timer-fire] room={room.code} submission timer expired")
        self.begin_voting(room)

    def check_submissions_complete(self, room: Room) -> bool:
        if room.phase != SUBMITTING:
            return False
        connected = room.connected_players()
        if connected and all(p.has_submitted for p in connected):
            self.logger.info(f"[early] room={room.code} all players submitted")
            self.cancel_timer(room)
            self.begin_voting(room)
            return True
        return False

    # ========== submitting -> voting ==========

    def begin_voting(self, room: Room) -> None:
        if room.phase != SUBMITTING:
            return
        room.phase = VOTING
        self.cancel_timer(room)
        if room.round_db_id is not None:
            self.service.persist(self.store.close_submissions, room.round_db_id, len(room.submissions))

        for player in room.players.values():
            player.has_voted = False
        for submission in room.submissions:
            submission.votes.clear()

        duration = room.timer_settings.voting_duration(len(room.submissions))
        self._start_countdown(room, duration, 'voting', lambda: self._voting_expired(room))
        self.broadcast_state(room)
        self.logger.info(f"[phase] room={room.code} voting submissions={len(room.submissions)}")

    def _voting_expired(self, room: Room) -> None:
        self.logger.info(f"[timer-fire] room={room.code} voting timer expired")
        self.begin_results(room)

    def check_votes_complete(self, room: Room) -> bool:
        if room.phase != VOTING:
            return False
        connected = room.connected_players()
        if connected and all(p.has_voted for p in connected):
            self.logger.info(f"[early] room={room.code} all players voted")
            self.cancel_timer(room)
            self.begin_results(room)
            return True
        return False

    # ========== voting -> results ==========

    def begin_results(self, room: Room) -> None:
        if room.phase != VOTING:
            return
        room.phase = RESULTS
        self.cancel_timer(room)

        results = score_round(room.submissions)
        for submission, result in zip(room.submissions, results):
            submitter = room.players.get(result.player_id)
            if submitter is not None:
                submitter.score += result.points
                if submitter.db_id is not None:
                    self.service.persist(self.store.update_player_score, submitter.db_id, submitter.score)
            if submission.db_id is not None:
                self.service.persist(self.store.update_submission_results, submission.db_id,
                                     result.points, result.yes_count, result.no_count)
        if room.round_db_id is not None:
            total_votes = sum(len(s.votes) for s in room.submissions)
            self.service.persist(self.store.close_voting, room.round_db_id, total_votes)

        room.results = results
        room.result_index = -1
        room.display_stage = 'result'
        self.broadcast_state(room)
        self.emit_to_display(room, 'results-mode-start', {'totalResults': len(results)})
        self.logger.info(f"[phase] room={room.code} results count={len(results)}")

        self.start_timer(room, self._results_sequence(room))

    def _results_sequence(self, room: Room) -> PhaseSequence:
        settings = room.timer_settings
        steps = [
            SequenceStep('result', 0 if i == 0 else settings.exemplar_result, lambda: self.reveal_next_result(room))
            for i in range(len(room.results))
        ]
        steps.append(SequenceStep('summary', settings.exemplar_result if room.results else 0,
                                  lambda: self.show_summary(room)))
        steps.append(SequenceStep('scoreboard', settings.summary, lambda: self.show_scoreboard(room)))
        steps.append(SequenceStep('next-round', settings.scoreboard, lambda: self.advance_round(room)))
        return PhaseSequence(steps, clock=self.service.clock)

    def reveal_next_result(self, room: Room) -> None:
        if room.result_index >= len(room.results) - 1:
            return
        room.result_index += 1
        room.display_stage = 'result'
        result = room.results[room.result_index]
        payload = result.to_dict()
        payload.update({'currentIndex': room.result_index, 'totalResults': len(room.results)})
        self.emit_to_display(room, 'show-exemplar-result', payload)
        self.logger.info(f"[reveal] room={room.code} result {room.result_index + 1}/{len(room.results)}")

    def show_summary(self, room: Room) -> None:
        room.display_stage = 'summary'
        self.emit_to_display(room, 'show-enhanced-summary', build_summary(room.results))
        if room.round_db_id is not None:
            self.service.persist(self.store.mark_results_shown, room.round_db_id)

    def show_scoreboard(self, room: Room) -> None:
        room.display_stage = 'scoreboard'
        self.emit_to_display(room, 'show-round-scoreboard', {
            'players': room.standings(),
            'round': room.round,
            'isGameWide': True,
        })

    # ========== next round ==========

    def advance_round(self, room: Room) -> None:
        if room.phase == ENDED:
            return
        room.round += 1
        category = self.service.categories.select_next(room.game_id)
        if category:
            self.begin_round(room, category)
            self.logger.info(f"[next-round] room={room.code} round={room.round} category={category!r}")
            return

        # Pool exhausted: idle until more categories arrive and someone starts again
        self.cancel_timer(room)
        room.phase = WAITING_FOR_CATEGORY
        room.category = ''
        room.submissions = []
        room.display_stage = None
        room.needs_more_categories = True
        for player in room.players.values():
            player.reset_round()
        self.broadcast_state(room)
        self.logger.info(f"[waiting] room={room.code} round={room.round} no categories available")

    # ========== any -> ended ==========

    def end_game(self, room: Room) -> None:
        if room.phase == ENDED:
            raise WrongPhase('Game already ended')
        self.cancel_timer(room)
        room.phase = ENDED
        room.display_stage = None
        if room.game_id is not None:
            self.service.persist(self.store.finish_game, room.game_id, 'completed', room.round)

        final_scores = room.standings()
        self.emit_to_players(room, 'game-ended', {'finalScores': final_scores})
        if room.gm_connection_id:
            self.gateway.emit_to_connection(room.gm_connection_id, 'game-ended', {'finalScores': final_scores})
        self.emit_to_display(room, 'show-round-scoreboard', {
            'players': final_scores,
            'round': room.round,
            'isGameWide': True,
            'isFinal': True,
        })
        room.expires_at = self.service.clock() + int(self.service.config.get('ENDED_ROOM_TTL_SEC', 300))
        self.logger.info(f"[game-end] room={room.code} rounds={room.round}")
