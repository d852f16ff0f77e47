import pytest

from courtplay.clock import Countdown, format_remaining


class FakeClock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_zero_and_negative():
    assert format_remaining(0) == "00:00:00.000"
    assert format_remaining(-500) == "00:00:00.000"


def test_format_example():
    assert format_remaining(3_723_004) == "01:02:03.004"


def test_format_wraps_at_one_day():
    assert format_remaining(24 * 3600 * 1000 + 1234) == format_remaining(1234)


def test_tick_counts_down(clock):
    countdown = Countdown(clock)
    countdown.start(5000)
    assert countdown.active
    clock.now = 1000
    assert countdown.tick() == format_remaining(4000)


def test_tick_stops_at_target(clock):
    countdown = Countdown(clock)
    countdown.start(5000)
    clock.now = 6000
    assert countdown.tick() == "00:00:00.000"
    assert countdown.active is False


def test_set_updates_text_only_when_asked(clock):
    countdown = Countdown(clock)
    countdown.set(2000)
    assert countdown.text == ""
    countdown.set(2000, True)
    assert countdown.text == format_remaining(2000)


def test_skip(clock):
    countdown = Countdown(clock)
    countdown.set(10_000)
    clock.now = 1000
    countdown.skip(3000)
    assert countdown.text == format_remaining(6000)


def test_pause_freezes_text(clock):
    countdown = Countdown(clock)
    countdown.start(5000)
    clock.now = 1000
    frozen = countdown.tick()
    countdown.pause()
    clock.now = 2000
    assert countdown.tick() == frozen
    assert countdown.active is False


def test_stop_resets_text(clock):
    countdown = Countdown(clock)
    countdown.start(5000)
    countdown.tick()
    countdown.stop()
    assert countdown.text == "00:00:00.000"
    assert countdown.active is False