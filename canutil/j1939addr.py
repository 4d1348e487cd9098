"""J1939 socket addresses: parsing, formatting and interface lookup."""

from __future__ import annotations

import errno
import socket
from dataclasses import dataclass, replace

from .constants import (
    IFNAMSIZ,
    J1939_MAX_PGN,
    J1939_NO_ADDR,
    J1939_NO_NAME,
    J1939_NO_PGN,
    J1939_PGN_REQUEST,
)

_U8 = 0xFF
_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF


@dataclass
class J1939Address:
    """The J1939 part of a CAN socket address."""

    ifindex: int = 0
    name: int = J1939_NO_NAME
    pgn: int = J1939_NO_PGN
    addr: int = J1939_NO_ADDR

    def sockaddr(self) -> tuple[str, int, int, int]:
        """Return the address tuple that J1939 sockets accept."""
        if self.ifindex:
            ifname = interface_name(self.ifindex)
            if ifname is None:
                raise OSError(errno.ENODEV, f"no interface with index {self.ifindex}")
        else:
            ifname = ""
        return (ifname, self.name, self.pgn, self.addr)

    def __str__(self) -> str:
        return addr2str(self)


def _digit(char: str) -> int | None:
    if "0" <= char <= "9":
        return ord(char) - ord("0")
    lower = char.lower()
    if "a" <= lower <= "z":
        return ord(lower) - ord("a") + 10
    return None


def _strtoul(text: str, base: int = 0) -> tuple[int, int]:
    """Parse a leading unsigned number the way the C library does.

    Returns the value and the index just past the digits, or (0, 0) when no
    digits were found.
    """
    pos = 0
    while pos < len(text) and text[pos] in " \t\n\v\f\r":
        pos += 1
    negative = False
    if pos < len(text) and text[pos] in "+-":
        negative = text[pos] == "-"
        pos += 1
    if (
        base in (0, 16)
        and text[pos:pos + 2].lower() == "0x"
        and pos + 2 < len(text)
        and (_digit(text[pos + 2]) or 99) < 16
    ):
        pos += 2
        base = 16
    elif base == 0:
        base = 8 if text[pos:pos + 1] == "0" else 10

    start = pos
    value = 0
    while pos < len(text):
        digit = _digit(text[pos])
        if digit is None or digit >= base:
            break
        value = value * base + digit
        pos += 1
    if pos == start:
        return 0, 0
    return (-value if negative else value), pos


def interface_index(name: str) -> int:
    """Return the index of an interface given by number or name, 0 if unknown."""
    value, end = _strtoul(name, 0)
    if end == len(name):
        return value
    for index, ifname in socket.if_nameindex():
        if ifname == name:
            return index
    return 0


def interface_name(index: int) -> str | None:
    """Return the name of the interface with ``index``, or None."""
    for ifindex, ifname in socket.if_nameindex():
        if ifindex == index:
            return ifname
    return None


def _nametoindex(name: str) -> int:
    try:
        return socket.if_nametoindex(name)
    except OSError:
        return 0


def parse_canaddr(spec: str, address: J1939Address | None = None) -> J1939Address:
    """Apply ``[IFACE][:[SA][,[PGN][,NAME]]]`` to ``address`` and return the result.

    Fields left empty keep their value from ``address``.
    """
    result = replace(address) if address is not None else J1939Address()
    iface, colon, rest = spec.partition(":")
    if iface:
        result.ifindex = _nametoindex(iface)
    if not colon:
        return result

    fields = rest.split(",")
    sa = fields[0]
    pgn = fields[1] if len(fields) > 1 else ""
    name = fields[2] if len(fields) > 2 else ""
    if sa:
        result.addr = _strtoul(sa, 0)[0] & _U8
    if pgn:
        result.pgn = _strtoul(pgn, 0)[0] & _U32
    if name:
        result.name = _strtoul(name, 0)[0] & _U64
    return result


def str2addr(text: str) -> J1939Address:
    """Parse ``[IFACE:][NAME|SA][,PGN]`` with hexadecimal NAME, SA and PGN.

    A two-digit number is a source address, any other length a NAME.
    Raises ValueError when the interface part is too long.
    """
    address = J1939Address()
    iface, colon, rest = text.partition(":")
    if colon:
        if len(iface) >= IFNAMSIZ:
            raise ValueError(f"interface name too long in {text!r}")
        address.ifindex = interface_index(iface)
    else:
        address.ifindex = interface_index(text)
        if address.ifindex:
            return address
        rest = text

    value, end = _strtoul(rest, 16)
    if end <= 0:
        return address
    if end == 2:
        address.addr = value & _U8
    else:
        address.name = value & _U64
    if end >= len(rest):
        return address

    tail = rest[end + 1:]
    value, end = _strtoul(tail, 16)
    if end > 0:
        address.pgn = value & _U32
    return address


def addr2str(address: J1939Address) -> str:
    """Render an address as ``[IFACE:]NAME[.SA]|SA|-[,PGN]``."""
    parts = []
    if address.ifindex:
        ifname = interface_name(address.ifindex)
        parts.append(f"#{address.ifindex}:" if ifname is None else f"{ifname}:")
    if address.name:
        parts.append(f"{address.name:016x}")
        if address.pgn == J1939_PGN_REQUEST:
            parts.append(f".{address.addr:02x}")
    elif address.addr <= 0xFE:
        parts.append(f"{address.addr:02x}")
    else:
        parts.append("-")
    if address.pgn <= J1939_MAX_PGN:
        parts.append(f",{address.pgn:05x}")
    return "".join(parts)