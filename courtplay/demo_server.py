"""Local server that replays a recorded demo file to a client as if it were live."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import shutil
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from courtplay.packet import Packet, decode

logger = logging.getLogger(__name__)

GREETING = "decryptor#NOENCRYPT#%"
DEFAULT_SC_PACKET = "SC#%"
FEATURES = (
    "noencryption", "yellowtext", "prezoom", "flipping", "customobjections",
    "fastloading", "deskmod", "evidence", "cccc_ic_support", "arup",
    "casing_alerts", "modcall_reason", "looping_sfx", "additive", "effects",
    "y_offset", "expanded_desk_mods",
)

MSG_LOADED = "Demo file loaded. Send /play or > in OOC to begin playback."
MSG_RELOADED = "Current demo file reloaded. Send /play or > in OOC to begin playback."
MSG_RESUMING = "Resuming playback."
MSG_PAUSING = "Pausing playback."
MSG_NOT_INTEGER = "Not a valid integer!"
MSG_MIN_WAIT = "min_wait is deprecated. Use the client Settings for minimum wait instead!"
MSG_DEBUG_VALUES = "Valid values are 1 or 0!"
MSG_DEBUG_HELP = (
    "Set debug mode using /debug 1 to enable, and /debug 0 to disable, which will use "
    "the fifth timer (TI#4) to show the remaining time until next demo line."
)
MSG_HELP = "Available commands:\nload, reload, play, pause, max_wait, debug, help"
MSG_END = (
    "Reached the end of the demo file. Send /play or > in OOC to restart, "
    "or /load to open a new file."
)

_INT_RE = re.compile(r"[+-]?\d+")
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1


def _to_int(text: str) -> int | None:
    text = text.strip()
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    return value if _INT_MIN <= value <= _INT_MAX else None


def _ooc(text: str) -> str:
    return f"CT#DEMO#{text}#1#%"


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


def read_demo_lines(text: str) -> list[str]:
    """Split demo text into packets; a packet spans lines until one ends with '%'."""
    raw = re.split(r"\r?\n", text)
    if raw and raw[-1] == "":
        raw.pop()
    lines: list[str] = []
    pending: list[str] = []
    for line in raw:
        pending.append(line)
        if line.endswith("%"):
            lines.append("\n".join(pending))
            pending = []
    if pending:
        lines.append("\n".join(pending))
    return lines


def fix_wait_desync(lines: Iterable[str]) -> list[str]:
    """Move each wait packet one place earlier, repairing old desynchronised demos."""
    fixed: list[str] = []
    for line in lines:
        if line.startswith("wait#"):
            fixed.insert(max(1, len(fixed) - 1), line)
        else:
            fixed.append(line)
    return fixed


def _split_fields(packet: str) -> list[str]:
    if packet.endswith("#"):
        packet = packet[:-1]
    return packet.split("#")


class _WaitTimer:
    """A single-shot timer whose firing is left to whoever drives the server."""

    def __init__(self, clock: Callable[[], int] = _monotonic_ms) -> None:
        self.clock = clock
        self.interval = 0
        self._deadline: int | None = None

    @property
    def active(self) -> bool:
        return self._deadline is not None

    def start(self, interval: int | None = None) -> None:
        if interval is not None:
            self.interval = interval
        self._deadline = self.clock() + max(0, self.interval)

    def stop(self) -> None:
        self._deadline = None

    def remaining_time(self) -> int:
        """Milliseconds until the timer fires, or -1 if it is not running."""
        if self._deadline is None:
            return -1
        return max(0, self._deadline - self.clock())


class DemoServer:
    """Answers a client's handshake and feeds it demo packets, honouring wait lines."""

    def __init__(self, send: Callable[[str], object]) -> None:
        self.send = send
        self.demo_file = ""
        self.demo_path = ""
        self.demo_data: deque[str] = deque()
        self.sc_packet = ""
        self.num_chars = 0
        self.max_wait = -1
        self.debug_mode = False
        self.elapsed_time = 0
        self.fix_desync = False
        self.on_skip_timers: Callable[[int], object] | None = None
        self.timer = _WaitTimer()
        self._client_connected = False

    def load_demo(self, path: str | Path) -> None:
        """Read a demo file into the packet queue; unreadable files are ignored."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not open demo file %s: %s", path, exc)
            return
        lines = read_demo_lines(text)
        self.demo_data = deque(lines)
        self.demo_path = str(path)

        if lines and lines[0].startswith("SC#") and lines[-1].startswith("wait#"):
            logger.info("Loaded a broken pre-2.9.1 demo file, with the wait desync issue!")
            if self.fix_desync:
                self._repair(path, lines)

    def _repair(self, path: Path, lines: Sequence[str]) -> None:
        logger.info("Making a backup of the broken demo...")
        backup = path.with_name(path.name + ".backup")
        if not backup.exists():
            try:
                shutil.copyfile(path, backup)
            except OSError as exc:
                logger.warning("Could not back up %s: %s", path, exc)
        fixed = fix_wait_desync(lines)
        try:
            path.write_text("\n".join(fixed), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not rewrite %s: %s", path, exc)
        self.demo_data = deque(fixed)

    def handle_message(self, message: str) -> None:
        """Split a raw client message into packets and handle each one."""
        for raw in message.split("%"):
            if not raw:
                continue
            command, *fields = _split_fields(raw)
            self.handle_packet(Packet(command, [decode(item) for item in fields]))

    def handle_packet(self, packet: Packet) -> None:
        """Answer one client packet the way a minimal server would."""
        header = packet.header
        if header == "HI":
            self.send("ID#0#DEMOINTERNAL#0#%")
        elif header == "ID":
            self.send("PN#0#1#%")
            self.send("FL#" + "#".join(FEATURES) + "#%")
        elif header == "askchaa":
            self.send(f"SI#{self.num_chars}#0#1#%")
        elif header == "RC":
            self.send(self.sc_packet)
        elif header == "RM":
            self.send("SM#%")
        elif header == "RD":
            self.send("DONE#%")
        elif header == "CC":
            self.send("PV#0#CID#-1#%")
            self.send(_ooc(MSG_LOADED))
        elif header == "CT" and len(packet.content) > 1:
            self._handle_command(packet.content[1])

    def _handle_command(self, text: str) -> None:
        if text.startswith("/load"):
            path = text[len("/load"):].strip()
            if not path:
                return
            self.load_demo(path)
            self.send(_ooc(MSG_LOADED))
            self.reset_state()
        elif text.startswith("/play") or text == ">":
            if self.timer.interval != 0 and not self.timer.active:
                self.timer.start()
                self.send(_ooc(MSG_RESUMING))
            else:
                if not self.demo_data and self.demo_path:
                    self.load_demo(self.demo_path)
                self.playback()
        elif text.startswith("/pause") or text == "|":
            time_left = self.timer.remaining_time()
            self.timer.stop()
            self.timer.interval = max(0, time_left)
            self.send(_ooc(MSG_PAUSING))
        elif text.startswith("/max_wait"):
            args = text.split(" ")
            if len(args) > 1:
                value = _to_int(args[1])
                if value is None:
                    self.send(_ooc(MSG_NOT_INTEGER))
                else:
                    self.max_wait = -1 if value < 0 else value
                    self.send(_ooc(f"Setting max_wait to {self.max_wait} milliseconds."))
            else:
                self.send(_ooc(f"Current max_wait is {self.max_wait}milliseconds."))
        elif text.startswith("/reload"):
            self.load_demo(self.demo_path)
            self.send(_ooc(MSG_RELOADED))
            self.reset_state()
        elif text.startswith("/min_wait"):
            self.send(_ooc(MSG_MIN_WAIT))
        elif text.startswith("/debug"):
            args = text.split(" ")
            if len(args) > 1:
                value = _to_int(args[1])
                if value in (0, 1):
                    self.debug_mode = value == 1
                    self.send(_ooc(f"Setting debug mode to {int(self.debug_mode)}"))
                    if not self.debug_mode:
                        self.send("TI#4#1#0#%")
                        self.send("TI#4#3#0#%")
                else:
                    self.send(_ooc(MSG_DEBUG_VALUES))
            else:
                self.send(_ooc(MSG_DEBUG_HELP))
        elif text.startswith("/help"):
            self.send(_ooc(MSG_HELP))

    def playback(self) -> None:
        """Send packets up to the next wait line and start the timer for it."""
        if not self.demo_data:
            return

        current = self.demo_data.popleft()
        if current.startswith("MS#"):
            self.elapsed_time = 0

        while not current.startswith("wait#"):
            self.send(current)
            if not self.demo_data:
                break
            current = self.demo_data.popleft()

        if not self.demo_data:
            self.send(_ooc(MSG_END))
            self.timer.stop()
            self.timer.interval = 0
            return

        _command, *fields = _split_fields(current)
        duration = (_to_int(fields[0]) or 0) if fields else 0

        if self.max_wait != -1 and duration + self.elapsed_time > self.max_wait:
            previous = duration
            duration = max(0, self.max_wait - self.elapsed_time)
            logger.debug("Max_wait of %d reached. Forcing duration to %dms", self.max_wait, duration)
            self._skip_timers(previous - duration)
        else:
            remaining = self.timer.remaining_time()
            if remaining > 0:
                logger.debug("Timer is being skipped by %dms", remaining)
                self._skip_timers(remaining)

        self.elapsed_time += duration
        self.timer.start(duration)
        if self.debug_mode:
            self.send("TI#4#2#%")
            self.send(f"TI#4#0#{duration}#%")

    def reset_state(self) -> None:
        """Clear evidence and timers on the client and stop waiting."""
        self.send("LE##%")
        for timer_id in range(5):
            self.send(f"TI#{timer_id}#1#0#%")
            self.send(f"TI#{timer_id}#3#0#%")
        self.send("BN#default#wit#%")
        self.timer.stop()

    def _skip_timers(self, msecs: int) -> None:
        if self.on_skip_timers is not None:
            self.on_skip_timers(msecs)

    def _accept(self) -> bool:
        """Prepare for a new client; False means the connection must be refused."""
        if not self.demo_file:
            return False
        self.load_demo(self.demo_file)
        if not self.demo_data:
            return False

        if self.demo_data[0].startswith("SC#"):
            self.sc_packet = self.demo_data.popleft()
        else:
            self.sc_packet = DEFAULT_SC_PACKET
        self.num_chars = 0

        if self._client_connected:
            logger.warning("Multiple connections to demo server disallowed.")
            return False
        self._client_connected = True
        return True

    def _timeout(self) -> None:
        self.timer.stop()
        self.playback()

    def _disconnect(self) -> None:
        self._client_connected = False


async def serve(demo_file: str, host: str = "127.0.0.1", port: int = 0) -> None:
    """Serve ``demo_file`` over WebSocket until cancelled."""
    import websockets

    outbox: list[asyncio.Queue[str] | None] = [None]

    def send(message: str) -> None:
        queue = outbox[0]
        if queue is not None:
            queue.put_nowait(message)

    demo = DemoServer(send)
    demo.demo_file = demo_file
    loop = asyncio.get_running_loop()
    pending: list[asyncio.TimerHandle | None] = [None]

    def sync_timer() -> None:
        if pending[0] is not None:
            pending[0].cancel()
            pending[0] = None
        if demo.timer.active:
            delay = demo.timer.remaining_time() / 1000
            pending[0] = loop.call_later(delay, fire)

    def fire() -> None:
        pending[0] = None
        demo._timeout()
        sync_timer()

    async def writer(websocket, queue: asyncio.Queue[str]) -> None:
        while True:
            await websocket.send(await queue.get())

    async def handler(websocket, *_args) -> None:
        if not demo._accept():
            await websocket.close()
            return
        queue: asyncio.Queue[str] = asyncio.Queue()
        outbox[0] = queue
        send(GREETING)
        writer_task = asyncio.create_task(writer(websocket, queue))
        try:
            async for message in websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                demo.handle_message(message)
                sync_timer()
        finally:
            writer_task.cancel()
            outbox[0] = None
            demo._disconnect()

    async with websockets.serve(handler, host, port) as server:
        bound = server.sockets[0].getsockname()[1]
        logger.info("Demo server started at port %d", bound)
        await asyncio.Future()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay a demo file to a connecting client.")
    parser.add_argument("demo_file", help="path of the .demo file to replay")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=0, help="0 picks a free port")
    parser.add_argument("--fix-desync", action="store_true",
                        help="repair pre-2.9.1 demo files with misplaced wait lines")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    if args.fix_desync:
        repairer = DemoServer(lambda _message: None)
        repairer.fix_desync = True
        repairer.load_demo(args.demo_file)
    try:
        asyncio.run(serve(args.demo_file, args.host, args.port))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())