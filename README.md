# canutil

Tools and a small library for working with Controller Area Network (CAN)
traffic on Linux: the compact `<can_id>#<data>` frame notation, conversion of
compact logs to ASC logs, SAE J1939 sockets and the SLCAN serial ASCII
protocol.

## Installation

```
pip install .
```

The package has no dependencies beyond the standard library. The frame
notation and the log converter work anywhere; the J1939 and SLCAN tools need
a Linux kernel with SocketCAN support.

## Library

The compact frame notation is parsed and printed by `canutil.frame`:

```python
from canutil.frame import parse_canframe, sprint_canframe

frame = parse_canframe("123#11.22.33")
print(sprint_canframe(frame, True, 8))   # 123#11.22.33
```

Accepted layouts:

- `123#` standard frame with no data, `12345678#` extended frame
- `123#R`, `123#R7` remote request frames with an optional length
- `123#1122334455667788`, `123#11.22.33` up to 8 data bytes
- `123##1112233` CAN FD frame: one flags digit, then up to 64 data bytes

`parse_canframe` returns a `CanFrame` and raises `ValueError` on text that is
not a valid frame. The helpers `can_dlc2len`, `can_len2dlc`, `asc2nibble` and
`hexstring2data` cover DLC mapping and hex conversion; `fprint_canframe`
writes a frame to a stream.

`canutil.j1939addr` converts J1939 address specifications to and from
`J1939Address` values: `str2addr` reads `[IFACE:][NAME|SA][,PGN]` with
hexadecimal fields (for example `can0:80,0ee00`), `parse_canaddr` reads
`[IFACE][:[SA][,[PGN][,NAME]]]`, and `addr2str` renders an address.

`canutil.constants` holds the numeric constants of CAN frames, error frames,
raw sockets and J1939 sockets.

## Commands

| Command        | Purpose                                                         |
|----------------|-----------------------------------------------------------------|
| `log2asc`      | Convert a compact log into an ASC log for the given interfaces  |
| `jcat`         | netcat-like transfer of files over J1939                        |
| `jsr`          | Send stdin to and write received data from a J1939 socket       |
| `testj1939`    | Exercise the J1939 socket API step by step                      |
| `slcanpty`     | Serve the SLCAN ASCII protocol on a pty, backed by a CAN socket |
| `slcan_attach` | Attach the SLCAN line discipline to a serial tty                |

Examples:

```
log2asc -I candump.log -O trace.asc can0 can1
jcat -i file_to_send can0:0x80 :0x90,0x12300
jcat can0:0x90 -r > received_file
jsr can0:80 90
testj1939 -s -r can0:0x20 :0x30
slcanpty /dev/ptmx can0
slcan_attach -o -s6 /dev/ttyS1
```

Run `log2asc`, `jcat`, `jsr`, `testj1939` or `slcan_attach` with `-?` to see
their options; `slcanpty` prints its usage when not given exactly two
arguments.

## What it does not do

- It has no readable long-format frame dump (aligned columns, ASCII or binary
  views) and no textual description of error frame contents; frames are only
  printed in the compact notation.
- It has no command that converts a compact log into a readable listing.
- It has no passive J1939 traffic monitor with timestamps; `jsr` and
  `testj1939` only show the data that reaches their own socket.
- It has no daemon that configures a serial adapter's UART speed and flow
  control and keeps it attached; `slcan_attach` attaches and detaches in the
  foreground only.

## Tests

```
pip install .[test]
pytest
```