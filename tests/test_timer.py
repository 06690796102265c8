from photobooth_queue.timer import format_countdown, is_overdue, remaining_seconds

T = 1_700_000_000_000


def test_remaining_seconds_counts_down():
    assert remaining_seconds(T, now=T, window_seconds=120) == 120
    assert remaining_seconds(T, now=T + 45_000, window_seconds=120) == 75
    assert remaining_seconds(T, now=T + 45_999, window_seconds=120) == 75


def test_remaining_seconds_clamps_at_zero():
    assert remaining_seconds(T, now=T + 130_000, window_seconds=120) == 0
    assert is_overdue(T, now=T + 130_000)
    assert not is_overdue(T, now=T + 10_000)


def test_nothing_called():
    assert remaining_seconds(None, now=T) is None
    assert not is_overdue(None, now=T)


def test_caller_clock_ahead_does_not_extend_window():
    assert remaining_seconds(T + 5_000, now=T, window_seconds=120) == 120


def test_format_countdown():
    assert format_countdown(75) == "01:15"
    assert format_countdown(0) == "00:00"
    assert format_countdown(None) == "--:--"
