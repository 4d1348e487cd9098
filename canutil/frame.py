"""Compact textual representation of CAN and CAN FD frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TextIO

from .constants import (
    CAN_EFF_FLAG,
    CAN_EFF_MASK,
    CAN_ERR_FLAG,
    CAN_ERR_MASK,
    CAN_MAX_DLC,
    CAN_MAX_DLEN,
    CAN_MTU,
    CAN_RTR_FLAG,
    CAN_SFF_MASK,
    CANFD_MAX_DLEN,
    CANFD_MTU,
)

CANID_DELIM = "#"
DATA_SEPARATOR = "."

_HEX_UPPER = "0123456789ABCDEF"

_DLC2LEN = (0, 1, 2, 3, 4, 5, 6, 7, 8, 12, 16, 20, 24, 32, 48, 64)

_LEN2DLC = (
    0, 1, 2, 3, 4, 5, 6, 7, 8,              # 0 - 8
    9, 9, 9, 9,                             # 9 - 12
    10, 10, 10, 10,                         # 13 - 16
    11, 11, 11, 11,                         # 17 - 20
    12, 12, 12, 12,                         # 21 - 24
    13, 13, 13, 13, 13, 13, 13, 13,         # 25 - 32
    14, 14, 14, 14, 14, 14, 14, 14,         # 33 - 40
    14, 14, 14, 14, 14, 14, 14, 14,         # 41 - 48
    15, 15, 15, 15, 15, 15, 15, 15,         # 49 - 56
    15, 15, 15, 15, 15, 15, 15, 15,         # 57 - 64
)


@dataclass
class CanFrame:
    """A CAN or CAN FD frame.

    ``length`` is the payload length the frame announces; it defaults to the
    size of ``data`` and may exceed it for remote frames. ``fd`` marks a CAN FD
    frame.
    """

    can_id: int = 0
    data: bytes = b""
    length: int | None = None
    flags: int = 0
    fd: bool = False

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        if len(self.data) > CANFD_MAX_DLEN:
            raise ValueError(f"payload of {len(self.data)} bytes exceeds {CANFD_MAX_DLEN}")
        if self.length is None:
            self.length = len(self.data)
        elif not 0 <= self.length <= 0xFF:
            raise ValueError(f"invalid frame length {self.length}")

    @property
    def padded(self) -> bytes:
        """The payload padded with zero bytes to the full CAN FD size."""
        return self.data.ljust(CANFD_MAX_DLEN, b"\0")

    @property
    def maxdlen(self) -> int:
        """The largest payload the frame type can carry."""
        return CANFD_MAX_DLEN if self.fd else CAN_MAX_DLEN

    def mtu(self) -> int:
        """Size of the frame structure on a CAN socket."""
        return CANFD_MTU if self.fd else CAN_MTU


def can_dlc2len(dlc: int) -> int:
    """Return the payload length for a data length code (only its low nibble counts)."""
    return _DLC2LEN[dlc & 0x0F]


def can_len2dlc(length: int) -> int:
    """Return the data length code that covers a payload length."""
    if length < 0:
        raise ValueError(f"negative length {length}")
    if length > CANFD_MAX_DLEN:
        return 0xF
    return _LEN2DLC[length]


def _nibble(char: str) -> int | None:
    if len(char) == 1:
        if "0" <= char <= "9":
            return ord(char) - ord("0")
        if "A" <= char <= "F":
            return ord(char) - ord("A") + 10
        if "a" <= char <= "f":
            return ord(char) - ord("a") + 10
    return None


def asc2nibble(char: str) -> int:
    """Return the value of one ASCII hex digit; raise ValueError otherwise."""
    value = _nibble(char)
    if value is None:
        raise ValueError(f"not a hex digit: {char!r}")
    return value


def hexstring2data(text: str, maxdlen: int) -> bytes:
    """Convert an even-length hex string to ``maxdlen`` bytes, zero padded."""
    if not text or len(text) % 2 or len(text) > maxdlen * 2:
        raise ValueError(f"invalid hex data length in {text!r}")
    try:
        payload = bytes(
            asc2nibble(hi) << 4 | asc2nibble(lo) for hi, lo in zip(text[::2], text[1::2])
        )
    except ValueError as exc:
        raise ValueError(f"invalid hex data {text!r}") from exc
    return payload.ljust(maxdlen, b"\0")


def _parse_id(digits: str) -> int:
    value = 0
    for char in digits:
        nibble = _nibble(char)
        if nibble is None:
            raise ValueError(f"invalid CAN identifier {digits!r}")
        value = value << 4 | nibble
    return value


def parse_canframe(text: str) -> CanFrame:
    """Parse ``<can_id>#{R{len}|data}`` or ``<can_id>##<flags>{data}``.

    Raises ValueError when the text is not a valid frame.
    """

    def at(pos: int) -> str:
        return text[pos] if pos < len(text) else "\0"

    if len(text) < 4:
        raise ValueError(f"frame text too short: {text!r}")

    if at(3) == CANID_DELIM:
        idx = 4
        can_id = _parse_id(text[:3])
    elif at(8) == CANID_DELIM:
        idx = 9
        can_id = _parse_id(text[:8])
        if not can_id & CAN_ERR_FLAG:
            can_id |= CAN_EFF_FLAG
    else:
        raise ValueError(f"missing identifier delimiter in {text!r}")

    if at(idx) in "Rr":
        can_id |= CAN_RTR_FLAG
        length = 0
        if idx + 1 < len(text):
            dlc = _nibble(at(idx + 1))
            if dlc is not None and dlc <= CAN_MAX_DLC:
                length = dlc
        return CanFrame(can_id=can_id, length=length)

    fd = False
    flags = 0
    maxdlen = CAN_MAX_DLEN
    if at(idx) == CANID_DELIM:
        fd = True
        maxdlen = CANFD_MAX_DLEN
        value = _nibble(at(idx + 1))
        if value is None:
            raise ValueError(f"invalid CAN FD flags in {text!r}")
        flags = value
        idx += 2

    payload = bytearray()
    while len(payload) < maxdlen:
        if at(idx) == DATA_SEPARATOR:
            idx += 1
        if idx >= len(text):
            break
        hi, lo = _nibble(at(idx)), _nibble(at(idx + 1))
        if hi is None or lo is None:
            raise ValueError(f"invalid data in {text!r}")
        payload.append(hi << 4 | lo)
        idx += 2

    return CanFrame(can_id=can_id, data=bytes(payload), flags=flags, fd=fd)


def sprint_canframe(frame: CanFrame, sep: bool = False, maxdlen: int | None = None) -> str:
    """Render a frame in the compact format; ``maxdlen`` 8 or 64 picks CAN or CAN FD."""
    if maxdlen is None:
        maxdlen = frame.maxdlen
    length = min(frame.length, maxdlen)

    if frame.can_id & CAN_ERR_FLAG:
        parts = [f"{frame.can_id & (CAN_ERR_MASK | CAN_ERR_FLAG):08X}#"]
    elif frame.can_id & CAN_EFF_FLAG:
        parts = [f"{frame.can_id & CAN_EFF_MASK:08X}#"]
    else:
        parts = [f"{frame.can_id & CAN_SFF_MASK:03X}#"]

    if maxdlen == CAN_MAX_DLEN and frame.can_id & CAN_RTR_FLAG:
        parts.append("R")
        if frame.length and frame.length <= CAN_MAX_DLC:
            parts.append(_HEX_UPPER[frame.length & 0x0F])
        return "".join(parts)

    if maxdlen == CANFD_MAX_DLEN:
        parts.append(CANID_DELIM + _HEX_UPPER[frame.flags & 0x0F])
        if sep and length:
            parts.append(DATA_SEPARATOR)

    joiner = DATA_SEPARATOR if sep else ""
    parts.append(joiner.join(f"{byte:02X}" for byte in frame.padded[:length]))
    return "".join(parts)


def fprint_canframe(
    stream: TextIO,
    frame: CanFrame,
    eol: str | None = None,
    sep: bool = False,
    maxdlen: int | None = None,
) -> None:
    """Write a frame in the compact format to ``stream``, followed by ``eol`` if given."""
    stream.write(sprint_canframe(frame, sep, maxdlen))
    if eol:
        stream.write(eol)