from category_game.services.games.timers import GameTimer, PhaseSequence, SequenceStep


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_timer_counts_down_and_completes_once():
    clock = Clock()
    fired = []
    ticks = []
    timer = GameTimer(3, lambda: fired.append(True), on_tick=lambda r, p: ticks.append((r, p)),
                      phase='submission', clock=clock)
    timer.start()
    for _ in range(5):
        clock.now += 1
        timer.tick()
    assert ticks == [(2, 'submission'), (1, 'submission'), (0, 'submission')]
    assert fired == [True]
    assert not timer.is_active
    timer.complete()
    assert fired == [True]


def test_zero_duration_completes_on_start():
    fired = []
    timer = GameTimer(0, lambda: fired.append(True), clock=Clock())
    timer.start()
    assert fired == [True]


def test_cancelled_timer_never_fires():
    fired = []
    timer = GameTimer(2, lambda: fired.append(True), clock=Clock())
    timer.start()
    timer.cancel()
    timer.tick()
    timer.tick()
    timer.start()
    assert fired == []
    assert not timer.is_active
    timer.cancel()


def test_get_state_reports_timestamp_of_last_tick():
    clock = Clock()
    timer = GameTimer(60, lambda: None, phase='voting', clock=clock)
    timer.start()
    clock.now += 1
    timer.tick()
    state = timer.get_state()
    assert state['remaining'] == 59
    assert state['phase'] == 'voting'
    assert state['is_active'] is True
    assert state['started_at'] == 100.0
    assert state['timestamp'] == 101.0


def test_restore_state_subtracts_elapsed_wall_time():
    clock = Clock()
    timer = GameTimer(60, lambda: None, phase='submission', clock=clock)
    timer.start()
    snapshot = timer.get_state()
    clock.now += 10.7
    timer.restore_state(snapshot)
    assert timer.remaining == 50
    assert timer.is_active


def test_restore_state_completes_when_time_is_up():
    clock = Clock()
    fired = []
    timer = GameTimer(5, lambda: fired.append(True), clock=clock)
    timer.start()
    snapshot = timer.get_state()
    clock.now += 30
    timer.restore_state(snapshot)
    assert timer.remaining == 0
    assert fired == [True]


def test_sequence_runs_steps_after_their_delays():
    clock = Clock()
    ran = []
    sequence = PhaseSequence([
        SequenceStep('first', 0, lambda: ran.append('first')),
        SequenceStep('second', 2, lambda: ran.append('second')),
        SequenceStep('third', 1, lambda: ran.append('third')),
    ], clock=clock)
    sequence.start()
    assert ran == ['first']
    assert sequence.get_state()['phase'] == 'second'
    sequence.tick()
    assert ran == ['first']
    sequence.tick()
    assert ran == ['first', 'second']
    sequence.tick()
    assert ran == ['first', 'second', 'third']
    assert not sequence.is_active


def test_cancelled_sequence_drops_pending_steps():
    ran = []
    sequence = PhaseSequence([
        SequenceStep('a', 1, lambda: ran.append('a')),
        SequenceStep('b', 1, lambda: ran.append('b')),
    ], clock=Clock())
    sequence.start()
    sequence.cancel()
    for _ in range(3):
        sequence.tick()
    assert ran == []
    assert sequence.get_state()['steps_left'] == 0
