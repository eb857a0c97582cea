"""Room timers and the background task that drives them.

Timers do not sleep on their own. ``TimerDriver`` wakes up once per tick
interval and asks the game service to advance every active timer by one
second, so all timer callbacks run on the same serialized path as socket
handlers. Tests skip the driver and call ``tick()`` directly.
"""

import math
import time
from typing import Callable, List, NamedTuple, Optional


class GameTimer:
    def __init__(self, duration: int, on_complete: Callable[[], None],
                 on_tick: Optional[Callable[[int, str], None]] = None,
                 phase: str = '', clock: Callable[[], float] = time.time):
        self.duration = int(duration)
        self.remaining = int(duration)
        self.on_complete = on_complete
        self.on_tick = on_tick
        self.phase = phase
        self.clock = clock
        self.is_active = False
        self.started_at: Optional[float] = None
        self.updated_at: Optional[float] = None
        self._finished = False

    def start(self) -> None:
        if self.is_active or self._finished:
            return
        self.is_active = True
        self.started_at = self.clock()
        self.updated_at = self.started_at
        if self.remaining <= 0:
            self.complete()

    def tick(self) -> None:
        if not self.is_active:
            return
        self.remaining -= 1
        self.updated_at = self.clock()
        if self.on_tick:
            self.on_tick(self.remaining, self.phase)
        # on_tick may have cancelled us
        if self.is_active and self.remaining <= 0:
            self.complete()

    def complete(self) -> None:
        if self._finished:
            return
        self._finished = True
        self.is_active = False
        self.remaining = 0
        self.on_complete()

    def cancel(self) -> None:
        self._finished = True
        self.is_active = False

    def get_state(self) -> dict:
        return {
            'remaining': self.remaining,
            'phase': self.phase,
            'is_active': self.is_active,
            'started_at': self.started_at,
            # wall time at which `remaining` was exact
            'timestamp': self.updated_at,
        }

    def restore_state(self, state: dict) -> None:
        """Re-derive remaining time from wall-clock time elapsed since ``state``."""
        if not state or not state.get('is_active') or self._finished:
            return
        elapsed = math.floor(self.clock() - (state.get('timestamp') or self.clock()))
        self.remaining = max(0, int(state['remaining']) - max(0, elapsed))
        self.phase = state.get('phase', self.phase)
        self.updated_at = self.clock()
        if self.remaining > 0:
            self.start()
        else:
            self.complete()


class SequenceStep(NamedTuple):
    label: str
    delay: int
    action: Callable[[], None]


class PhaseSequence:
    """Runs ordered, delayed steps as one cancellable timer.

    Each step waits ``delay`` seconds (zero runs at once) and then calls its
    action. Cancelling the sequence drops every step that has not run yet.
    """

    def __init__(self, steps: List[SequenceStep], clock: Callable[[], float] = time.time):
        self.steps = list(steps)
        self.clock = clock
        self.current: Optional[GameTimer] = None
        self.current_label: Optional[str] = None
        self.is_active = False
        self._cancelled = False

    def start(self) -> None:
        if self.is_active or self._cancelled:
            return
        self.is_active = True
        self._advance()

    def _advance(self) -> None:
        while self.steps and not self._cancelled:
            step = self.steps.pop(0)
            self.current_label = step.label
            if step.delay <= 0:
                step.action()
                continue
            self.current = GameTimer(step.delay, lambda s=step: self._run(s), phase=step.label, clock=self.clock)
            self.current.start()
            return
        self.current = None
        self.is_active = False

    def _run(self, step: SequenceStep) -> None:
        step.action()
        if not self._cancelled:
            self._advance()

    def tick(self) -> None:
        if self.is_active and self.current is not None:
            self.current.tick()

    def cancel(self) -> None:
        self._cancelled = True
        self.is_active = False
        self.steps = []
        if self.current is not None:
            self.current.cancel()

    def get_state(self) -> dict:
        state = self.current.get_state() if self.current else {'remaining': 0, 'started_at': None, 'timestamp': None}
        state.update({'phase': self.current_label, 'is_active': self.is_active, 'steps_left': len(self.steps)})
        return state


class TimerDriver:
    """Background task calling ``on_tick`` every ``interval`` seconds."""

    def __init__(self, socketio, app, on_tick: Callable[[], None], interval: float = 1.0):
        self.socketio = socketio
        self.app = app
        self.on_tick = on_tick
        self.interval = interval
        self.running = False

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.app.logger.info(f"[driver-start] interval={self.interval}s")
        self.socketio.start_background_task(self._run)

    def stop(self) -> None:
        self.running = False

    def _run(self) -> None:
        while self.running:
            self.socketio.sleep(self.interval)
            if not self.running:
                break
            with self.app.app_context():
                try:
                    self.on_tick()
                except Exception:
                    # Keep ticking for the other rooms
                    self.app.logger.exception("[driver-error] tick failed")
        self.app.logger.info("[driver-stop]")
