# courtplay

The core pieces of a courtroom role-play client, with no graphical interface:

- `courtplay.packet`: protocol packets of the form `HEADER#field#...#%`.
  `encode` and `decode` escape and unescape `#`, `%`, `$` and `&`.
  `Packet(header, content).to_string(ensure_encoded)` serialises a packet.
- `courtplay.chatlog`: `ChatLogPiece.to_string()` renders a chat log entry as
  one line. Empty names and messages are shown as `UNKNOWN`.
- `courtplay.effects_migration`: `migrate_effects` turns old flat
  `name=sound` / `name_property=value` pairs into numbered version-2
  sections. `migrate_effects_file(path)` rewrites an `effects.ini` in place
  and returns the new sections.
- `courtplay.clock`: `Countdown` counts down towards a target time. Its
  `clock` argument is any callable that returns milliseconds.
  `format_remaining` gives `hh:mm:ss.zzz` and wraps at one day.
- `courtplay.music_loop`: `parse_loop_data(text, sample_rate)` reads a song's
  `.txt` loop file into byte positions (`LoopPoints`), assuming 16-bit stereo.
  `song_display_name` and `stream_label` give the "now playing" text for a
  stream.
- `courtplay.loader`: `AnimationLoader` decodes an animated image's frames
  with Pillow on an executor. By default this is a shared pool of 8 threads.
  `frame(n)` waits until frame `n` has been decoded.
- `courtplay.animation`: `AnimationLayer` steps through a loaded animation
  and scales each frame into its area (`resize`, `set_masking_rect`,
  `ResizeMode`). It does not run a timer of its own. After each frame it sets
  `pending_delay` in milliseconds, and whatever drives it calls `advance()`
  when that time has passed. The signals `started_playback`,
  `stopped_playback`, `finished_playback` and `frame_number_changed` accept
  callbacks through `connect`.
- `courtplay.frame_effects`: `parse_frame_effects` reads the shake, flash and
  sound fields, in that order, into effects keyed by frame number.
  `FrameEffectDispatcher.effects_for(frame, emote)` picks the effects that are
  due for a frame.
- `courtplay.demo_server`: replays recorded `.demo` files to a client over a
  local WebSocket (`DemoServer`, `serve`, `read_demo_lines`,
  `fix_wait_desync`).

## Installing

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Quick look

```python
from courtplay.packet import Packet, encode, decode

packet = Packet("CT", ["name", "50% off #1"])
packet.to_string(True)   # 'CT#name#50<percent> off <num>1#%'
decode(encode("a&b$c"))  # 'a&b$c'
```

```python
from courtplay.clock import format_remaining

format_remaining(3_723_004)   # '01:02:03.004'
```

## Replaying a demo

A demo file is a recording of the packets a server sent, one per line, with
`wait#<ms>#%` lines between them. Start the demo server on a file:

```
courtplay-demo path/to/recording.demo
```

It logs the port it listens on. The default host is `127.0.0.1` and the
default port is a free one; `--host` and `--port` change them. Point a client
at `ws://127.0.0.1:<port>`. The server accepts one client at a time.

`--fix-desync` repairs an older demo file whose wait lines are each one place
too late. A file is treated as one of these when it starts with `SC#` and ends
with `wait#`. The repair first copies the file to `<file>.backup`, then
rewrites it.

Once the client has chosen a character, send these commands in
out-of-character chat:

| command                 | effect                                                      |
|-------------------------|-------------------------------------------------------------|
| `/play` or `>`          | start, resume after a pause, or skip ahead to the next wait |
| `/pause` or `\|`        | pause playback                                              |
| `/max_wait <ms>`        | cap the total wait; a negative value removes the cap        |
| `/max_wait`             | show the current cap                                        |
| `/load <path>`          | load another demo file and reset the client's state         |
| `/reload`               | reload the current demo file and reset the client's state   |
| `/debug 1`, `/debug 0`  | show the time to the next line on the fifth timer, or stop  |
| `/help`                 | list the commands                                           |

Run `courtplay-demo --help` to see every option.

## What it does not do

courtplay has no graphical interface, and it does not play any sound. The
music module works out loop positions and labels but does not decode or play
audio. The package does not connect to live game servers and does not look up
character, theme or background assets on disk. The only networking it does is
the local demo replay server.