"""Send standard input over a J1939 socket and write received data to standard output."""

from __future__ import annotations

import errno
import getopt
import os
import select
import socket
import sys
from contextlib import contextmanager
from collections.abc import Iterator
from dataclasses import dataclass

from .constants import AF_CAN, CAN_J1939, SO_J1939_SEND_PRIO, SOL_CAN_J1939
from .j1939addr import J1939Address, _strtoul, addr2str, str2addr

HELP = (
    "jsr: An SAE J1939 send/recv utility\n"
    "Usage: jsr [OPTION...] SOURCE [DEST]\n"
    "\n"
    "  -v, --verbose\t\tIncrease verbosity\n"
    "  -p, --priority=VAL\tJ1939 priority (0..7, default 6)\n"
    "  -S, --serialize\tStrictly serialize outgoing packets\n"
    "  -s, --size\t\tPacket size, default autodetected\n"
    "\n"
    "  SOURCE\t[IFACE:][NAME|SA][,PGN]\n"
    "  DEST\t\t\t[NAME|SA]\n"
)

OPTSTRING = "vp:s:S?"
LONG_OPTS = ["help", "verbose", "priority=", "size=", "serialize"]

# Send flag asking the stack to serialize outgoing packets strictly.
MSG_SYN = 0x400

DEFAULT_PKT_LEN = 1024


class _Fatal(Exception):
    pass


@contextmanager
def _failing(context: str) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        raise _Fatal(f"{context}: {exc.strerror or exc}") from exc


@dataclass
class _Settings:
    verbose: int = 0
    sendflags: int = 0
    pkt_len: int = 0
    priority: int = 6
    prio_defined: bool = False
    src: J1939Address | None = None
    dst: J1939Address | None = None


def parse_args(argv: list[str]) -> _Settings:
    """Parse the command line.

    Raises getopt.GetoptError for unknown options or a help request and
    ValueError for a zero packet size or a bad address.
    """
    opts, operands = getopt.gnu_getopt(argv, OPTSTRING, LONG_OPTS)
    settings = _Settings()
    for opt, value in opts:
        if opt in ("-v", "--verbose"):
            settings.verbose += 1
        elif opt in ("-s", "--size"):
            settings.pkt_len = _strtoul(value, 0)[0]
            if settings.pkt_len <= 0:
                raise ValueError(f"packet size of {value}: {os.strerror(errno.EINVAL)}")
        elif opt in ("-p", "--priority"):
            settings.priority = _strtoul(value, 0)[0]
            settings.prio_defined = True
        elif opt in ("-S", "--serialize"):
            settings.sendflags |= MSG_SYN
        else:
            raise getopt.GetoptError("help requested", opt)

    for index, spec in enumerate(operands[:2]):
        try:
            address = str2addr(spec)
        except ValueError as exc:
            raise ValueError(f"bad address spec [{spec}]") from exc
        if index == 0:
            settings.src = address
        else:
            settings.dst = address
    return settings


def _run(settings: _Settings) -> int:
    pkt_len = settings.pkt_len
    if not pkt_len:
        with _failing("stat stdin, could not determine buffer size"):
            pkt_len = os.fstat(sys.stdin.fileno()).st_size or DEFAULT_PKT_LEN

    src_text = addr2str(settings.src or J1939Address())
    dst_text = addr2str(settings.dst or J1939Address())

    with _failing("socket(can, dgram, j1939)"):
        sock = socket.socket(AF_CAN, socket.SOCK_DGRAM, CAN_J1939)

    with sock:
        if settings.prio_defined:
            with _failing("setsockopt priority"):
                sock.setsockopt(SOL_CAN_J1939, SO_J1939_SEND_PRIO, settings.priority)
        if settings.src is not None:
            try:
                sock.bind(settings.src.sockaddr())
            except OSError as exc:
                raise _Fatal(f"bind({src_text}), {-(exc.errno or 0)}: {exc.strerror}") from exc
        if settings.dst is not None:
            try:
                sock.connect(settings.dst.sockaddr())
            except OSError as exc:
                raise _Fatal(
                    f"connect({dst_text}), {-(exc.errno or 0)}: {exc.strerror}"
                ) from exc

        stdin_fd = sys.stdin.fileno()
        stdout_fd = sys.stdout.fileno()
        poller = select.poll()
        poller.register(stdin_fd, select.POLLIN)
        poller.register(sock.fileno(), select.POLLIN)

        while True:
            events = dict(poller.poll())
            if events.get(stdin_fd):
                with _failing("read(stdin)"):
                    chunk = os.read(stdin_fd, pkt_len)
                if not chunk:
                    break
                while True:
                    try:
                        sock.send(chunk, settings.sendflags)
                        break
                    except OSError as exc:
                        if exc.errno != errno.ENOBUFS:
                            raise _Fatal(f"write({src_text}): {exc.strerror}") from exc
                        print(f"jsr: write({src_text}): {exc.strerror}", file=sys.stderr)
            if events.get(sock.fileno()):
                try:
                    data = sock.recv(pkt_len)
                except OSError as exc:
                    print(f"jsr: read({dst_text}): {exc.strerror}", file=sys.stderr)
                    if exc.errno != errno.EHOSTDOWN:
                        return 1
                else:
                    with _failing("write(stdout)"):
                        os.write(stdout_fd, data)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        settings = parse_args(argv)
    except getopt.GetoptError:
        sys.stderr.write(HELP)
        return 1
    except ValueError as exc:
        print(f"jsr: {exc}", file=sys.stderr)
        return 1

    try:
        return _run(settings)
    except _Fatal as exc:
        print(f"jsr: {exc}", file=sys.stderr)
        return 1