"""Bridge between the SLCAN ASCII protocol on a pseudo terminal and a CAN interface."""

from __future__ import annotations

import fcntl
import logging
import os
import select
import socket
import struct
import sys
import termios
import time
from dataclasses import dataclass, field

from .constants import (
    AF_CAN,
    CAN_EFF_FLAG,
    CAN_EFF_MASK,
    CAN_MTU,
    CAN_RAW,
    CAN_RAW_FILTER,
    CAN_RTR_FLAG,
    CAN_SFF_MASK,
    SOL_CAN_RAW,
)
from .frame import CanFrame, _nibble
from .j1939addr import _strtoul

logger = logging.getLogger(__name__)

DEVICE_NAME_PTMX = "/dev/ptmx"

ACK = b"\r"
NACK = b"\a"

_RX_BUFFER_SIZE = 200
_CAN_FRAME = struct.Struct("=IB3x8s")
_TIMEVAL = struct.Struct("@ll")
_OPEN_FILTER = struct.Struct("=II").pack(0, 0)
_USEC = 1_000_000

_SIOCGSTAMP = 0x8906
_TIOCSPTLCK = getattr(termios, "TIOCSPTLCK", 0x40045431)
_TIOCGPTN = getattr(termios, "TIOCGPTN", 0x80045430)

_REPLIES = {
    "V": b"V1013\r",
    "v": b"v1014\r",
    "N": b"N4242\r",
    "F": b"F00\r",
}


@dataclass
class SlcanSession:
    """State of the SLCAN command interpreter on the terminal side."""

    is_open: bool = False
    timestamps: bool = False
    _buffer: bytearray = field(default_factory=bytearray, init=False, repr=False)

    def feed(self, data: bytes) -> tuple[bytes, list[CanFrame]]:
        """Process bytes read from the terminal.

        Returns the replies for the terminal and the frames to send on the bus.
        Incomplete commands are kept until their carriage return arrives;
        ValueError is raised when one grows beyond the receive buffer.
        """
        buf = self._buffer
        buf += data
        replies = bytearray()
        frames: list[CanFrame] = []

        while True:
            while buf[:1] == b"\r":
                del buf[0]
            if not buf:
                break
            if b"\r" not in buf:
                if len(buf) >= _RX_BUFFER_SIZE - 1:
                    buf.clear()
                    raise ValueError("SLCAN message too long for receive buffer")
                break

            logger.debug("%s", bytes(buf).replace(b"\r", b"@").decode("latin-1"))
            reply, ptr, frame = self._command(buf)
            replies += reply
            if frame is not None:
                frames.append(frame)

            if len(buf) > ptr + 1:
                del buf[:ptr + 1]
            else:
                buf.clear()
                break

        return bytes(replies), frames

    def _command(self, buf: bytearray) -> tuple[bytes, int, CanFrame | None]:
        def at(pos: int) -> int:
            return buf[pos] if pos < len(buf) else 0

        cmd = chr(buf[0])
        if cmd in "mM":
            # Acceptance filters of the adapter have no counterpart here.
            return ACK, 9, None
        if cmd == "Z":
            self.timestamps = bool(at(1) & 0x01)
            return ACK, 2, None
        if cmd == "O":
            self.is_open = True
            return ACK, 1, None
        if cmd == "C":
            self.is_open = False
            return ACK, 1, None
        if cmd in _REPLIES:
            return _REPLIES[cmd], 1, None
        if cmd in "US":
            return ACK, 2, None
        if cmd == "s":
            return ACK, 5, None
        if cmd in "PA":
            return NACK, 1, None
        if cmd == "X":
            return (ACK if at(1) & 0x01 else NACK), 2, None
        if cmd not in "tTrR":
            return NACK, len(buf) - 1, None

        extended = not buf[0] & 0x20
        rtr = cmd in "rR"
        ptr = 9 if extended else 4
        flags = CAN_EFF_FLAG if extended else 0

        def identifier() -> int:
            return _strtoul(bytes(buf[1:ptr]).decode("latin-1"), 16)[0] & 0xFFFFFFFF

        if rtr and at(ptr) != ord("0"):
            # Remote frame sent without a length digit: tolerated, length 0.
            return ACK, ptr - 1, CanFrame(can_id=identifier() | CAN_RTR_FLAG | flags)

        dlc_char = at(ptr)
        if not ord("0") <= dlc_char < ord("9"):
            return NACK, ptr, None
        dlc = dlc_char - ord("0")
        can_id = identifier() | flags
        if rtr:
            can_id |= CAN_RTR_FLAG

        payload = bytearray()
        ptr += 1
        for _ in range(dlc):
            hi = _nibble(chr(at(ptr)))
            ptr += 1
            if hi is None:
                return NACK, ptr, None
            lo = _nibble(chr(at(ptr)))
            ptr += 1
            if lo is None:
                return NACK, ptr, None
            payload.append(hi << 4 | lo)
        if dlc:
            ptr -= 1
        return ACK, ptr, CanFrame(can_id=can_id, data=bytes(payload))


def frame_to_slcan(frame: CanFrame, timestamp: float | tuple[int, int] | None = None) -> bytes:
    """Encode a classic CAN frame as an SLCAN message, optionally with a millisecond stamp.

    ``timestamp`` is seconds as a float or a ``(seconds, microseconds)`` pair.
    """
    can_id = int(frame.can_id)
    cmd = "R" if can_id & CAN_RTR_FLAG else "T"
    dlc = frame.length
    if can_id & CAN_EFF_FLAG:
        text = f"{cmd}{can_id & CAN_EFF_MASK:08X}{dlc}"
    else:
        text = f"{cmd.lower()}{can_id & CAN_SFF_MASK:03X}{dlc}"
    text += frame.padded[:dlc].hex().upper()
    if timestamp is not None:
        if isinstance(timestamp, tuple):
            sec, usec = timestamp
        else:
            sec, usec = divmod(round(timestamp * _USEC), _USEC)
        text += f"{(sec % 60) * 1000 + usec // 1000:04X}"
    return (text + "\r").encode("ascii")


def _usage(prg: str) -> str:
    return (
        "\n"
        f"{prg} creates a pty for applications using the slcan ASCII protocol and\n"
        "converts the ASCII data to a CAN network interface (and vice versa)\n\n"
        f"Usage: {prg} <pty> <can interface>\n"
        f"e.g. '{prg} /dev/ptyc0 can0' creates /dev/ttyc0 for the slcan application\n"
        f"e.g. for pseudo-terminal '{prg} {DEVICE_NAME_PTMX} can0' creates /dev/pts/N\n"
        "\n"
    )


def _check_select_stdin() -> bool:
    try:
        ready, _, _ = select.select([0], [], [], 0)
    except (OSError, ValueError):
        return False
    if ready:
        try:
            if not os.read(0, 1):
                return False
        except OSError:
            return False
    return True


def _configure_pty(pty_fd: int) -> None:
    attrs = termios.tcgetattr(pty_fd)
    attrs[0] &= ~termios.ICRNL
    attrs[0] |= termios.INLCR
    attrs[3] &= ~(
        termios.ICANON
        | termios.ECHO
        | termios.ECHOE
        | termios.ECHOK
        | termios.ECHONL
        | termios.ECHOPRT
        | termios.ECHOKE
    )
    termios.tcsetattr(pty_fd, termios.TCSANOW, attrs)


def _pty_to_can(pty_fd: int, sock: socket.socket, session: SlcanSession) -> bool:
    try:
        data = os.read(pty_fd, _RX_BUFFER_SIZE - 1)
    except OSError as exc:
        print(f"read pty: {exc.strerror}", file=sys.stderr)
        return False
    if not data:
        return False

    was_open = session.is_open
    try:
        reply, frames = session.feed(data)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return False

    if session.is_open != was_open:
        try:
            if session.is_open:
                sock.setsockopt(SOL_CAN_RAW, CAN_RAW_FILTER, _OPEN_FILTER)
            else:
                sock.setsockopt(SOL_CAN_RAW, CAN_RAW_FILTER, None, 0)
        except OSError as exc:
            print(f"setsockopt: {exc.strerror}", file=sys.stderr)

    for frame in frames:
        raw = _CAN_FRAME.pack(int(frame.can_id), frame.length, frame.padded[:8])
        try:
            sent = sock.send(raw)
        except OSError as exc:
            print(f"write socket: {exc.strerror}", file=sys.stderr)
            return False
        if sent != CAN_MTU:
            print("write socket: incomplete frame", file=sys.stderr)
            return False

    if reply:
        try:
            os.write(pty_fd, reply)
        except OSError as exc:
            print(f"write pty replybuf: {exc.strerror}", file=sys.stderr)
            return False
    return True


def _can_to_pty(pty_fd: int, sock: socket.socket, session: SlcanSession) -> bool:
    try:
        raw = sock.recv(CAN_MTU)
    except OSError as exc:
        print(f"read socket: {exc.strerror}", file=sys.stderr)
        return False
    if len(raw) != CAN_MTU:
        print("read socket: incomplete frame", file=sys.stderr)
        return False

    can_id, dlc, payload = _CAN_FRAME.unpack(raw)
    frame = CanFrame(can_id=can_id, data=payload[:min(dlc, 8)], length=dlc)

    timestamp: tuple[int, int] | float | None = None
    if session.timestamps:
        try:
            timestamp = _TIMEVAL.unpack(
                fcntl.ioctl(sock.fileno(), _SIOCGSTAMP, bytes(_TIMEVAL.size))
            )
        except OSError as exc:
            print(f"SIOCGSTAMP: {exc.strerror}", file=sys.stderr)
            timestamp = time.time()

    try:
        os.write(pty_fd, frame_to_slcan(frame, timestamp))
    except OSError as exc:
        print(f"write pty: {exc.strerror}", file=sys.stderr)
        return False
    return True


def _serve(pty_fd: int, pty_path: str, ifname: str, select_stdin: bool) -> int:
    try:
        _configure_pty(pty_fd)
    except termios.error as exc:
        print(f"tcgetattr: {exc}", file=sys.stderr)
        return 1

    if pty_path == DEVICE_NAME_PTMX:
        try:
            fcntl.ioctl(pty_fd, _TIOCSPTLCK, struct.pack("@i", 0))
        except OSError as exc:
            print(f"unlockpt: {exc.strerror}", file=sys.stderr)
            return 1
        try:
            number = struct.unpack("@I", fcntl.ioctl(pty_fd, _TIOCGPTN, bytes(4)))[0]
        except OSError as exc:
            print(f"ptsname: {exc.strerror}", file=sys.stderr)
            return 1
        print(f"open: {pty_path}: slave pseudo-terminal is /dev/pts/{number}", flush=True)

    try:
        sock = socket.socket(AF_CAN, socket.SOCK_RAW, CAN_RAW)
    except OSError as exc:
        print(f"socket: {exc.strerror}", file=sys.stderr)
        return 1

    session = SlcanSession()
    with sock:
        # No frames are received until the application sends 'O'.
        try:
            sock.setsockopt(SOL_CAN_RAW, CAN_RAW_FILTER, None, 0)
        except OSError:
            pass
        try:
            sock.bind((ifname,))
        except OSError as exc:
            print(f"bind: {exc.strerror or exc}", file=sys.stderr)
            return 1

        while True:
            fds = [pty_fd, sock.fileno()] + ([0] if select_stdin else [])
            try:
                readable, _, _ = select.select(fds, [], [])
            except OSError as exc:
                print(f"select: {exc.strerror}", file=sys.stderr)
                return 1
            if select_stdin and 0 in readable:
                break
            if pty_fd in readable and not _pty_to_can(pty_fd, sock, session):
                break
            if sock.fileno() in readable and not _can_to_pty(pty_fd, sock, session):
                break
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command line entry point: ``<pty> <can interface>``."""
    if argv is None:
        argv = sys.argv[1:]
    prg = sys.argv[0] if sys.argv and sys.argv[0] else "slcanpty"
    if len(argv) != 2:
        sys.stderr.write(_usage(prg))
        return 1
    pty_path, ifname = argv

    select_stdin = _check_select_stdin()
    try:
        pty_fd = os.open(pty_path, os.O_RDWR)
    except OSError as exc:
        print(f"open pty: {exc.strerror}", file=sys.stderr)
        return 1
    try:
        return _serve(pty_fd, pty_path, ifname, select_stdin)
    finally:
        os.close(pty_fd)