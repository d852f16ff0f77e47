from pathlib import Path

import pytest

from courtplay.demo_server import (
    DEFAULT_SC_PACKET,
    FEATURES,
    DemoServer,
    fix_wait_desync,
    read_demo_lines,
)
from courtplay.packet import Packet


class FakeClock:
    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def sent():
    return []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server(sent, clock):
    demo = DemoServer(sent.append)
    demo.timer.clock = clock
    return demo


def write_demo(tmp_path: Path, lines, name="test.demo") -> Path:
    path = tmp_path / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def ooc(text):
    return f"CT#DEMO#{text}#1#%"


def test_read_demo_lines_joins_multiline_packets():
    text = "MS#first\nsecond#%\nwait#100#%\n"
    assert read_demo_lines(text) == ["MS#first\nsecond#%", "wait#100#%"]


def test_read_demo_lines_handles_crlf_and_empty():
    assert read_demo_lines("") == []
    assert read_demo_lines("SC#a#%\r\nwait#5#%") == ["SC#a#%", "wait#5#%"]


def test_fix_wait_desync_moves_waits_earlier():
    lines = ["SC#x#%", "MS#1#%", "wait#5#%", "MS#2#%", "wait#7#%"]
    fixed = fix_wait_desync(lines)
    assert fixed == ["SC#x#%", "wait#5#%", "MS#1#%", "wait#7#%", "MS#2#%"]
    assert sorted(fixed) == sorted(lines)
    assert not fixed[-1].startswith("wait#")


def test_handshake_packets(server, sent):
    server.handle_message("HI#hdid#%")
    server.handle_message("ID#client#version#%")
    server.handle_message("askchaa#%")
    server.handle_message("RM#%RD#%")
    assert sent == [
        "ID#0#DEMOINTERNAL#0#%",
        "PN#0#1#%",
        "FL#" + "#".join(FEATURES) + "#%",
        "SI#0#0#1#%",
        "SM#%",
        "DONE#%",
    ]
    assert server.max_wait == -1
    assert server.debug_mode is False
    assert not server.timer.active
    assert list(server.demo_data) == []


def test_character_choice_reply(server, sent):
    server.handle_packet(Packet("CC", ["0", "1", "hdid"]))
    assert sent == [
        "PV#0#CID#-1#%",
        ooc("Demo file loaded. Send /play or > in OOC to begin playback."),
    ]
    assert not server.timer.active
    assert list(server.demo_data) == []


def test_accept_without_file_is_refused(server):
    assert server._accept() is False


def test_accept_with_missing_file_is_refused(server, tmp_path):
    server.demo_file = str(tmp_path / "missing.demo")
    assert server._accept() is False


def test_accept_takes_sc_packet(server, sent, tmp_path):
    path = write_demo(tmp_path, ["SC#Phoenix#Edgeworth#%", "MS#a#%"])
    server.demo_file = str(path)
    assert server._accept() is True
    server.handle_message("RC#%")
    assert sent == ["SC#Phoenix#Edgeworth#%"]
    assert list(server.demo_data) == ["MS#a#%"]


def test_accept_without_sc_packet_uses_default(server, sent, tmp_path):
    path = write_demo(tmp_path, ["MS#a#%"])
    server.demo_file = str(path)
    assert server._accept() is True
    assert server.sc_packet == DEFAULT_SC_PACKET
    assert server._accept() is False


def test_max_wait_commands(server, sent):
    server.handle_packet(Packet("CT", ["me", "/max_wait"]))
    server.handle_packet(Packet("CT", ["me", "/max_wait 500"]))
    server.handle_packet(Packet("CT", ["me", "/max_wait -9"]))
    server.handle_packet(Packet("CT", ["me", "/max_wait abc"]))
    assert sent == [
        ooc("Current max_wait is -1milliseconds."),
        ooc("Setting max_wait to 500 milliseconds."),
        ooc("Setting max_wait to -1 milliseconds."),
        ooc("Not a valid integer!"),
    ]
    assert server.max_wait == -1


def test_debug_commands(server, sent):
    server.handle_packet(Packet("CT", ["me", "/debug 1"]))
    assert server.debug_mode is True
    server.handle_packet(Packet("CT", ["me", "/debug 0"]))
    assert server.debug_mode is False
    server.handle_packet(Packet("CT", ["me", "/debug 7"]))
    assert sent == [
        ooc("Setting debug mode to 1"),
        ooc("Setting debug mode to 0"),
        "TI#4#1#0#%",
        "TI#4#3#0#%",
        ooc("Valid values are 1 or 0!"),
    ]


def test_help_and_min_wait(server, sent):
    server.handle_packet(Packet("CT", ["me", "/help"]))
    server.handle_packet(Packet("CT", ["me", "/min_wait 5"]))
    assert sent == [
        ooc("Available commands:\nload, reload, play, pause, max_wait, debug, help"),
        ooc("min_wait is deprecated. Use the client Settings for minimum wait instead!"),
    ]
    assert server.max_wait == -1
    assert server.debug_mode is False


def test_playback_steps_through_waits(server, sent, tmp_path):
    path = write_demo(tmp_path, ["MS#a#%", "wait#100#%", "CT#x#%", "wait#50#%", "MS#b#%"])
    server.load_demo(path)

    server.playback()
    assert sent == ["MS#a#%"]
    assert server.timer.active
    assert server.timer.interval == 100

    server._timeout()
    assert sent[-1] == "CT#x#%"
    assert server.timer.interval == 50

    server._timeout()
    assert sent[-2:] == [
        "MS#b#%",
        ooc("Reached the end of the demo file. Send /play or > in OOC to restart, "
            "or /load to open a new file."),
    ]
    assert server.timer.interval == 0
    assert not server.timer.active


def test_playback_caps_wait_at_max_wait(server, tmp_path):
    skipped = []
    server.on_skip_timers = skipped.append
    path = write_demo(tmp_path, ["MS#a#%", "wait#100#%", "MS#b#%"])
    server.load_demo(path)
    server.max_wait = 30

    server.playback()
    assert server.timer.interval == 30
    assert skipped[0] + server.timer.interval == 100


def test_play_while_waiting_skips_remaining(server, clock, tmp_path):
    skipped = []
    server.on_skip_timers = skipped.append
    path = write_demo(tmp_path, ["MS#a#%", "wait#100#%", "CT#x#%", "wait#50#%", "MS#b#%"])
    server.load_demo(path)

    server.handle_packet(Packet("CT", ["me", ">"]))
    clock.now = 40
    server.handle_packet(Packet("CT", ["me", ">"]))
    assert skipped == [100 - 40]
    assert server.timer.interval == 50


def test_pause_and_resume(server, sent, clock, tmp_path):
    path = write_demo(tmp_path, ["MS#a#%", "wait#100#%", "MS#b#%", "wait#5#%", "MS#c#%"])
    server.load_demo(path)
    server.handle_packet(Packet("CT", ["me", "/play"]))
    clock.now = 40
    server.handle_packet(Packet("CT", ["me", "/pause"]))
    assert not server.timer.active
    assert server.timer.interval == 100 - 40
    assert sent[-1] == ooc("Pausing playback.")

    server.handle_packet(Packet("CT", ["me", "|"]))
    server.handle_packet(Packet("CT", ["me", "/play"]))
    assert sent[-1] == ooc("Resuming playback.")
    assert server.timer.active
    assert server.timer.remaining_time() == server.timer.interval


def test_debug_mode_reports_wait(server, sent, tmp_path):
    path = write_demo(tmp_path, ["MS#a#%", "wait#100#%", "MS#b#%"])
    server.load_demo(path)
    server.debug_mode = True
    server.playback()
    assert sent == ["MS#a#%", "TI#4#2#%", "TI#4#0#100#%"]
    assert server.timer.active
    assert server.timer.interval == 100
    assert list(server.demo_data) == ["MS#b#%"]


def test_reload_resets_state(server, sent, tmp_path):
    path = write_demo(tmp_path, ["MS#a#%", "wait#100#%", "MS#b#%"])
    server.load_demo(path)
    server.playback()
    sent.clear()
    server.handle_packet(Packet("CT", ["me", "/reload"]))
    assert sent[0] == ooc("Current demo file reloaded. Send /play or > in OOC to begin playback.")
    assert sent[1] == "LE##%"
    assert sent[-1] == "BN#default#wit#%"
    assert "TI#4#3#0#%" in sent
    assert not server.timer.active
    assert list(server.demo_data) == ["MS#a#%", "wait#100#%", "MS#b#%"]


def test_load_command_switches_file(server, sent, tmp_path):
    first = write_demo(tmp_path, ["MS#a#%"], "first.demo")
    second = write_demo(tmp_path, ["MS#b#%", "wait#5#%", "MS#c#%"], "second.demo")
    server.load_demo(first)
    server.handle_packet(Packet("CT", ["me", f"/load {second}"]))
    assert server.demo_path == str(second)
    assert list(server.demo_data) == ["MS#b#%", "wait#5#%", "MS#c#%"]
    assert sent[0] == ooc("Demo file loaded. Send /play or > in OOC to begin playback.")


def test_play_reloads_after_end(server, sent, tmp_path):
    path = write_demo(tmp_path, ["MS#a#%"])
    server.load_demo(path)
    server.playback()
    assert not server.demo_data
    sent.clear()
    server.handle_packet(Packet("CT", ["me", "/play"]))
    assert sent[0] == "MS#a#%"


def test_broken_demo_left_alone_without_fix(server, tmp_path):
    lines = ["SC#a#%", "MS#1#%", "wait#5#%", "MS#2#%", "wait#7#%"]
    path = write_demo(tmp_path, lines)
    original = path.read_text(encoding="utf-8")
    server.load_demo(path)
    assert list(server.demo_data) == lines
    assert path.read_text(encoding="utf-8") == original
    assert not (tmp_path / "test.demo.backup").exists()


def test_broken_demo_is_repaired(server, tmp_path):
    lines = ["SC#a#%", "MS#1#%", "wait#5#%", "MS#2#%", "wait#7#%"]
    path = write_demo(tmp_path, lines)
    original = path.read_text(encoding="utf-8")
    server.fix_desync = True
    server.load_demo(path)

    expected = fix_wait_desync(lines)
    assert list(server.demo_data) == expected
    assert path.read_text(encoding="utf-8") == "\n".join(expected)
    assert (tmp_path / "test.demo.backup").read_text(encoding="utf-8") == original
    assert read_demo_lines(path.read_text(encoding="utf-8")) == expected


def test_escaped_fields_are_decoded(server, sent):
    server.handle_message("CT#me#/max_wait<num>#%")
    assert sent == [ooc("Current max_wait is -1milliseconds.")]
    assert server.max_wait == -1


def test_ct_without_message_is_ignored(server, sent):
    server.handle_packet(Packet("CT", ["me"]))
    assert sent == []
    assert server.max_wait == -1
    assert server.debug_mode is False
    assert not server.timer.active