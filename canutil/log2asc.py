"""Convert compact CAN frame log files into the ASC log format."""

from __future__ import annotations

import getopt
import os
import re
import sys
import time
from collections.abc import Iterable, Iterator, Sequence

from .constants import CAN_EFF_FLAG, CAN_EFF_MASK, CAN_ERR_FLAG, CAN_RTR_FLAG
from .frame import parse_canframe

BUFSZ = 400

_LINE = re.compile(r"\(\s*([+-]?\d+)\.\s*([+-]?\d+)\)\s*(\S+)\s+(\S+)")


def _usage(prg: str) -> str:
    return (
        f"Usage: {prg} [can-interfaces]\n"
        "Options: -I <infile>  (default stdin)\n"
        "         -O <outfile> (default stdout)\n"
        "         -4 (reduce decimal place to 4 digits)\n"
        "         -n (set newline to cr/lf - default lf)\n"
    )


def convert(
    lines: Iterable[str],
    devices: Sequence[str],
    crlf: bool = False,
    four_digits: bool = False,
) -> Iterator[str]:
    """Yield the ASC output for compact log lines, frames of ``devices`` only.

    Channels are numbered from 1 in the order of ``devices``. Raises
    ValueError on malformed lines and on CAN FD frames.
    """
    newline = "\r\n" if crlf else "\n"
    start_sec = start_usec = 0

    for line in lines:
        if len(line) >= BUFSZ - 2:
            raise ValueError("line too long for input buffer")
        if not line.startswith("("):
            continue
        match = _LINE.match(line)
        if not match:
            raise ValueError("incorrect line format in logfile")
        sec, usec = int(match.group(1)), int(match.group(2))
        device, ascframe = match.group(3), match.group(4)

        if not start_sec:
            start_sec, start_usec = sec, usec
            yield f"date {time.ctime(start_sec)}\n"
            yield f"base hex  timestamps absolute{newline}"
            yield f"no internal events logged{newline}"

        if device not in devices:
            continue
        channel = list(devices).index(device) + 1

        frame = parse_canframe(ascframe)
        if frame.fd:
            raise ValueError(f"CAN FD frames are not supported: {ascframe!r}")

        sec -= start_sec
        usec -= start_usec
        if usec < 0:
            sec -= 1
            usec += 1000000
        if sec < 0:
            sec = usec = 0

        if four_digits:
            out = f"{sec:4d}.{int(usec / 100):04d} "
        else:
            out = f"{sec:4d}.{usec:06d} "
        out += f"{channel:<2d} "

        can_id = int(frame.can_id)
        if can_id & CAN_ERR_FLAG:
            out += "ErrorFrame"
        else:
            ident = f"{can_id & CAN_EFF_MASK:X}" + ("x" if can_id & CAN_EFF_FLAG else " ")
            out += f"{ident:<15s} Rx   "
            if can_id & CAN_RTR_FLAG:
                out += "r"
            else:
                out += f"d {len(frame.data)}" + "".join(f" {b:02X}" for b in frame.data)
        yield out + newline


def main(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    if argv is None:
        argv = sys.argv[1:]
    prg = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "log2asc"

    try:
        opts, devices = getopt.gnu_getopt(argv, "I:O:4n?")
    except getopt.GetoptError as exc:
        print(exc, file=sys.stderr)
        print(_usage(prg), end="", file=sys.stderr)
        return 0

    infile_path = outfile_path = None
    crlf = four_digits = False
    for opt, value in opts:
        if opt == "-I":
            infile_path = value
        elif opt == "-O":
            outfile_path = value
        elif opt == "-n":
            crlf = True
        elif opt == "-4":
            four_digits = True
        elif opt == "-?":
            print(_usage(prg), end="", file=sys.stderr)
            return 0

    try:
        infile = open(infile_path) if infile_path else sys.stdin
    except OSError as exc:
        print(f"infile: {exc.strerror}", file=sys.stderr)
        return 1
    try:
        outfile = open(outfile_path, "w", newline="") if outfile_path else sys.stdout
    except OSError as exc:
        print(f"outfile: {exc.strerror}", file=sys.stderr)
        if infile is not sys.stdin:
            infile.close()
        return 1

    try:
        if not devices:
            print("no CAN interfaces defined!", file=sys.stderr)
            print(_usage(prg), end="", file=sys.stderr)
            return 1
        try:
            for chunk in convert(infile, devices, crlf, four_digits):
                outfile.write(chunk)
        except ValueError as exc:
            print(exc, file=sys.stderr)
            return 1
        outfile.flush()
        return 0
    finally:
        if infile is not sys.stdin:
            infile.close()
        if outfile is not sys.stdout:
            outfile.close()