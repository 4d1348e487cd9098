"""Demonstration of the J1939 socket interface: bind, connect, send, receive and echo."""

from __future__ import annotations

import getopt
import re
import signal
import socket
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from collections.abc import Iterator

from .constants import AF_CAN, CAN_J1939, SO_J1939_SEND_PRIO, SOL_CAN_J1939
from .j1939addr import J1939Address, _strtoul, addr2str, interface_index, parse_canaddr
from .jcat import _getopt

HELP = (
    "testj1939: demonstrate j1939 use\n"
    "Usage: testj1939 FROM TO\n"
    " FROM / TO\t- or [IFACE][:[SA][,[PGN][,NAME]]]\n"
    "Options:\n"
    " -v\t\tPrint relevant API calls\n"
    " -s[=LEN]\tInitial send of LEN bytes dummy data\n"
    " -r\t\tReceive (and print) data\n"
    " -e\t\tEcho incoming packets back\n"
    "\t\tThis atually receives packets\n"
    " -c\t\tIssue connect()\n"
    " -p=PRIO\tSet priority to PRIO\n"
    " -b\t\tDo normal bind with SA+1 and rebind with actual SA\n"
    " -o\t\tOmit bind\n"
    " -n\t\tEmit 64bit NAMEs in output\n"
    " -w[TIME]\tReturn after TIME (default 1) seconds\n"
    "\n"
    "Example:\n"
    "testj1939 can1 20\n"
    "\n"
)

OPTSTRING = "?vbos::rep:cnw::"

MAX_DATA = 128
_SOCKADDR_LEN = 24

_FLOAT = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


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
    verbose: bool = False
    todo_send: int = 0
    todo_recv: bool = False
    todo_echo: bool = False
    todo_prio: int = -1
    todo_connect: bool = False
    todo_names: bool = False
    todo_rebind: bool = False
    no_bind: bool = False
    wait: float | None = None
    sockname: J1939Address = field(default_factory=J1939Address)
    peername: J1939Address | None = None


def test_vector(size: int) -> bytes:
    """Return the first ``size`` bytes of the dummy payload."""
    if not 0 <= size <= MAX_DATA:
        raise ValueError(f"Unsupported size. max: {MAX_DATA}")
    return bytes((((2 * j) << 4) + ((2 * j + 1) & 0xF)) & 0xFF for j in range(size))


def format_received(data: bytes, addr: int, pgn: int, name: int = 0, show_names: bool = False) -> str:
    """Format a received packet as a hex dump of eight bytes per line."""
    parts = []
    if show_names and name:
        parts.append(f"{name:016x} ")
    parts.append(f"{addr:02x} {pgn:05x}:")
    for offset, byte in enumerate(data):
        if offset and offset % 8 == 0:
            parts.append(f"\n{offset:05x}    ")
        parts.append(f" {byte:02x}")
    return "".join(parts)


def _strtod(text: str) -> float:
    match = _FLOAT.match(text)
    return float(match.group(1)) if match else 0.0


def parse_args(argv: list[str]) -> _Settings:
    """Parse the command line.

    Raises getopt.GetoptError on unknown options and ValueError on a bad size.
    """
    opts, operands = _getopt(argv, OPTSTRING)
    settings = _Settings()
    for opt, value in opts:
        if opt == "v":
            settings.verbose = True
        elif opt == "s":
            size = _strtoul(value or "8", 0)[0]
            if not 0 <= size <= MAX_DATA:
                raise ValueError(f"Unsupported size. max: {MAX_DATA}")
            settings.todo_send = size
        elif opt == "r":
            settings.todo_recv = True
        elif opt == "e":
            settings.todo_echo = True
        elif opt == "p":
            settings.todo_prio = _strtoul(value or "", 0)[0]
        elif opt == "c":
            settings.todo_connect = True
        elif opt == "n":
            settings.todo_names = True
        elif opt == "b":
            settings.todo_rebind = True
        elif opt == "o":
            settings.no_bind = True
        elif opt == "w":
            settings.wait = _strtod(value or "1")
        else:
            raise getopt.GetoptError(f"unsupported option -- '{opt}'", opt)

    if operands and operands[0] != "-":
        settings.sockname = parse_canaddr(operands[0], settings.sockname)
    if settings.todo_rebind:
        settings.sockname.addr = (settings.sockname.addr + 1) & 0xFF
    if len(operands) > 1 and operands[1] != "-":
        settings.peername = parse_canaddr(operands[1], J1939Address())
    return settings


def _on_alarm(signum, frame) -> None:
    print("testj1939: exit as requested", file=sys.stderr)
    sys.exit(0)


def _run(settings: _Settings) -> None:
    def log(message: str) -> None:
        if settings.verbose:
            print(message, file=sys.stderr)

    log("- socket(PF_CAN, SOCK_DGRAM, CAN_J1939);")
    with _failing("socket(j1939)"):
        sock = socket.socket(AF_CAN, socket.SOCK_DGRAM, CAN_J1939)

    with sock:
        if settings.todo_prio >= 0:
            log(f"- setsockopt(, SOL_CAN_J1939, SO_J1939_SEND_PRIO, &{settings.todo_prio});")
            with _failing(f"set priority {settings.todo_prio}"):
                sock.setsockopt(SOL_CAN_J1939, SO_J1939_SEND_PRIO, settings.todo_prio)

        sockname = settings.sockname
        if not settings.no_bind:
            log(f"- bind(, {addr2str(sockname)}, {_SOCKADDR_LEN});")
            with _failing("bind()"):
                sock.bind(sockname.sockaddr())
            if settings.todo_rebind:
                sockname.addr = (sockname.addr - 1) & 0xFF
                log(f"- bind(, {addr2str(sockname)}, {_SOCKADDR_LEN});")
                with _failing("re-bind()"):
                    sock.bind(sockname.sockaddr())

        peername = settings.peername
        if settings.todo_connect:
            if peername is None:
                raise _Fatal("no peername supplied")
            log(f"- connect(, {addr2str(peername)}, {_SOCKADDR_LEN});")
            with _failing("connect()"):
                sock.connect(peername.sockaddr())

        if settings.todo_send:
            data = test_vector(settings.todo_send)
            with _failing("sendto"):
                if peername is not None and not settings.todo_connect:
                    log(
                        f"- sendto(, <dat>, {len(data)}, 0, {addr2str(peername)}, "
                        f"{_SOCKADDR_LEN});"
                    )
                    sock.sendto(data, peername.sockaddr())
                else:
                    log(f"- send(, <dat>, {len(data)}, 0);")
                    sock.send(data)

        if settings.todo_echo or settings.todo_recv:
            log("- while (1)")
        while settings.todo_echo or settings.todo_recv:
            log(f"- recvfrom(, <dat>, {_SOCKADDR_LEN}, 0, &<peername>, {_SOCKADDR_LEN});")
            with _failing("recvfrom()"):
                data, peer = sock.recvfrom(MAX_DATA)
            ifname, name, pgn, addr = peer
            source = J1939Address(
                ifindex=interface_index(ifname) if ifname else 0,
                name=name,
                pgn=pgn,
                addr=addr,
            )
            if settings.todo_echo:
                log(
                    f"- sendto(, <dat>, {len(data)}, 0, {addr2str(source)}, "
                    f"{_SOCKADDR_LEN});"
                )
                with _failing("sendto"):
                    sock.sendto(data, peer)
            if settings.todo_recv:
                print(format_received(data, addr, pgn, name, settings.todo_names), flush=True)

    if settings.wait is not None:
        while True:
            time.sleep(1)


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
        print(f"testj1939: {exc}", file=sys.stderr)
        return 1

    if settings.wait is not None:
        signal.signal(signal.SIGALRM, _on_alarm)
        signal.setitimer(signal.ITIMER_REAL, max(settings.wait, 0.0))

    try:
        _run(settings)
    except _Fatal as exc:
        print(f"testj1939: {exc}", file=sys.stderr)
        return 1
    return 0