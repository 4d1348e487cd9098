"""Attach the SLCAN line discipline to a serial line and create a CAN netdevice."""

from __future__ import annotations

import fcntl
import getopt
import os
import socket
import struct
import sys
import termios
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

OPTSTRING = "ldwocfs:b:n:?"

IFNAMSIZ = 16

# Line disciplines of the tty layer.
N_TTY = 0
N_SLCAN = 17

_TIOCSETD = getattr(termios, "TIOCSETD", 0x5423)
_SIOCGIFNAME = 0x8910
_SIOCSIFNAME = 0x8923

# struct ifreq: 16 byte name followed by a 24 byte union.
_IFREQ_UNION = 24


class _Failure(Exception):
    pass


@contextmanager
def _failing(context: str) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        raise _Failure(f"{context}: {exc.strerror or exc}") from exc


@dataclass
class _AttachSettings:
    tty: str = ""
    detach: bool = False
    waitkey: bool = False
    send_open: bool = False
    send_listen: bool = False
    send_close: bool = False
    read_status_flags: bool = False
    speed: str | None = None
    btr: str | None = None
    name: str | None = None


def _usage(prg: str) -> str:
    return (
        f"\nUsage: {prg} [options] tty\n\n"
        "Options: -o         (send open command 'O\\r')\n"
        "         -l         (send listen only command 'L\\r', overrides -o)\n"
        "         -c         (send close command 'C\\r')\n"
        "         -f         (read status flags with 'F\\r' to reset error states)\n"
        "         -s <speed> (set CAN speed 0..8)\n"
        "         -b <btr>   (set bit time register value)\n"
        "         -d         (only detach line discipline)\n"
        "         -w         (attach - wait for keypess - detach)\n"
        "         -n <name>  (assign created netdevice name)\n"
        "\nExamples:\n"
        "slcan_attach -w -o -f -s6 -c /dev/ttyS1\n"
        "slcan_attach /dev/ttyS1\n"
        "slcan_attach -d /dev/ttyS1\n"
        "slcan_attach -w -n can15 /dev/ttyS1\n"
        "\n"
    )


def setup_commands(
    speed: str | None = None,
    btr: str | None = None,
    read_status_flags: bool = False,
    listen: bool = False,
    send_open: bool = False,
) -> list[bytes]:
    """Return the SLCAN commands that configure the adapter, in sending order.

    Listen only mode takes precedence over a plain open.
    """
    commands = []
    if speed:
        commands.append(f"C\rS{speed}\r".encode("ascii"))
    if btr:
        commands.append(f"C\rs{btr}\r".encode("ascii"))
    if read_status_flags:
        commands.append(b"F\r")
    if listen:
        commands.append(b"L\r")
    elif send_open:
        commands.append(b"O\r")
    return commands


def parse_args(argv: list[str]) -> _AttachSettings:
    """Parse the command line; raises getopt.GetoptError on any usage error."""
    opts, operands = getopt.gnu_getopt(argv, OPTSTRING)
    settings = _AttachSettings()
    for opt, value in opts:
        if opt == "-d":
            settings.detach = True
        elif opt == "-w":
            settings.waitkey = True
        elif opt == "-o":
            settings.send_open = True
        elif opt == "-l":
            settings.send_listen = True
        elif opt == "-c":
            settings.send_close = True
        elif opt == "-f":
            settings.read_status_flags = True
        elif opt == "-s":
            if len(value) > 1:
                raise getopt.GetoptError(f"invalid CAN speed {value!r}", "s")
            settings.speed = value
        elif opt == "-b":
            if len(value) > 6:
                raise getopt.GetoptError(f"invalid bit time register value {value!r}", "b")
            settings.btr = value
        elif opt == "-n":
            if len(value) > IFNAMSIZ - 1:
                raise getopt.GetoptError(f"netdevice name too long {value!r}", "n")
            settings.name = value
        else:
            raise getopt.GetoptError("help requested", opt)

    if len(operands) != 1:
        raise getopt.GetoptError("exactly one tty expected")
    settings.tty = operands[0]
    return settings


def _write_commands(fd: int, commands: Iterable[bytes]) -> None:
    for command in commands:
        with _failing("write"):
            written = os.write(fd, command)
        if written <= 0:
            raise _Failure("write: nothing written")


def _set_line_discipline(fd: int, ldisc: int, context: str) -> None:
    with _failing(context):
        fcntl.ioctl(fd, _TIOCSETD, struct.pack("@i", ldisc))


def _netdevice_name(fd: int) -> str:
    with _failing("ioctl SIOCGIFNAME"):
        raw = fcntl.ioctl(fd, _SIOCGIFNAME, bytes(IFNAMSIZ + 1))
    return raw.split(b"\0", 1)[0].decode("ascii", "replace")


def _rename_request(old: str, new: str) -> bytes:
    name = old.encode()[:IFNAMSIZ].ljust(IFNAMSIZ, b"\0")
    newname = new.encode()[:IFNAMSIZ].ljust(_IFREQ_UNION, b"\0")
    return name + newname


def _rename(sock: socket.socket, old: str, new: str) -> None:
    fcntl.ioctl(sock.fileno(), _SIOCSIFNAME, _rename_request(old, new))


def _attach(fd: int, settings: _AttachSettings) -> int:
    if settings.waitkey or not settings.detach:
        _write_commands(
            fd,
            setup_commands(
                settings.speed,
                settings.btr,
                settings.read_status_flags,
                settings.send_listen,
                settings.send_open,
            ),
        )
        _set_line_discipline(fd, N_SLCAN, "ioctl TIOCSETD")
        device = _netdevice_name(fd)
        print(f"attached tty {settings.tty} to netdevice {device}", flush=True)

        if settings.name:
            print(f"rename netdevice {device} to {settings.name} ... ", end="", flush=True)
            try:
                sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, 0)
            except OSError as exc:
                print(f"socket for interface rename: {exc.strerror}", file=sys.stderr)
            else:
                with sock:
                    try:
                        _rename(sock, device, settings.name)
                    except OSError:
                        print("failed!", flush=True)
                    else:
                        print("ok.", flush=True)

    if settings.waitkey:
        print(f"Press any key to detach {settings.tty} ...", flush=True)
        sys.stdin.read(1)

    if settings.waitkey or settings.detach:
        _set_line_discipline(fd, N_TTY, "ioctl")
        if settings.send_close:
            _write_commands(fd, [b"C\r"])
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    if argv is None:
        argv = sys.argv[1:]
    prg = sys.argv[0] if sys.argv and sys.argv[0] else "slcan_attach"
    try:
        settings = parse_args(argv)
    except getopt.GetoptError:
        sys.stderr.write(_usage(prg))
        return 1

    try:
        fd = os.open(settings.tty, os.O_WRONLY | os.O_NOCTTY)
    except OSError as exc:
        print(f"{settings.tty}: {exc.strerror}", file=sys.stderr)
        return 1
    try:
        return _attach(fd, settings)
    except _Failure as exc:
        print(exc, file=sys.stderr)
        return 1
    finally:
        os.close(fd)