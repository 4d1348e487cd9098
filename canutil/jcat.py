"""Netcat-like transfer of data over J1939 sockets."""

from __future__ import annotations

import getopt
import os
import socket
import sys
from dataclasses import dataclass, field
from typing import BinaryIO

from .constants import (
    AF_CAN,
    CAN_J1939,
    J1939_MAX_ETP_PACKET_SIZE,
    SO_J1939_SEND_PRIO,
    SOL_CAN_J1939,
)
from .j1939addr import J1939Address, _strtoul, parse_canaddr

HELP = (
    "jcat: netcat tool for j1939\n"
    "Usage: jcat FROM TO\n"
    " FROM / TO\t- or [IFACE][:[SA][,[PGN][,NAME]]]\n"
    "Options:\n"
    " -i <infile>\t(default stdin)\n"
    " -s[=LEN]\tInitial send of LEN bytes dummy data\n"
    " -r\t\tReceive data\n"
    "\n"
    "Example:\n"
    "jcat -i some_file_to_send  can0:0x80 :0x90,0x12300\n"
    "jcat can0:0x90 -r > /tmp/some_file_to_receive\n"
    "\n"
)

OPTSTRING = "?i:vs::rp:cnw::"


def _getopt(argv: list[str], optstring: str) -> tuple[list[tuple[str, str | None]], list[str]]:
    """Parse short options with required (``x:``) and optional (``x::``) arguments.

    Options and operands may be mixed; ``--`` ends option parsing. Raises
    getopt.GetoptError for unknown options and missing arguments.
    """
    spec: dict[str, int] = {}
    pos = 0
    while pos < len(optstring):
        char = optstring[pos]
        pos += 1
        kind = 0
        while pos < len(optstring) and optstring[pos] == ":" and kind < 2:
            kind += 1
            pos += 1
        spec[char] = kind

    opts: list[tuple[str, str | None]] = []
    operands: list[str] = []
    args = iter(argv)
    for arg in args:
        if arg == "--":
            operands.extend(args)
            break
        if not arg.startswith("-") or arg == "-":
            operands.append(arg)
            continue
        pos = 1
        while pos < len(arg):
            char = arg[pos]
            pos += 1
            kind = spec.get(char)
            if kind is None or char == ":":
                raise getopt.GetoptError(f"invalid option -- '{char}'", char)
            if kind == 0:
                opts.append((char, None))
                continue
            rest = arg[pos:]
            if rest:
                opts.append((char, rest))
            elif kind == 1:
                value = next(args, None)
                if value is None:
                    raise getopt.GetoptError(f"option requires an argument -- '{char}'", char)
                opts.append((char, value))
            else:
                opts.append((char, None))
            break
    return opts, operands


@dataclass
class JcatOptions:
    """Settings of one transfer."""

    infile: str | None = None
    todo_send: int = 0
    todo_prio: int = -1
    todo_recv: bool = False
    todo_filesize: bool = False
    todo_connect: bool = False
    sockname: J1939Address = field(default_factory=J1939Address)
    peername: J1939Address | None = None


def parse_args(argv: list[str]) -> JcatOptions:
    """Parse the command line; raises getopt.GetoptError on unsupported options."""
    opts, operands = _getopt(argv, OPTSTRING)
    options = JcatOptions()
    for opt, value in opts:
        if opt == "i":
            options.infile = value
            options.todo_filesize = True
        elif opt == "s":
            options.todo_send = _strtoul(value or "8", 0)[0] & 0xFFFFFFFF
        elif opt == "r":
            options.todo_recv = True
        elif opt == "p":
            options.todo_prio = _strtoul(value or "", 0)[0]
        elif opt == "c":
            options.todo_connect = True
        else:
            raise getopt.GetoptError(f"unsupported option -- '{opt}'", opt)

    if operands and operands[0] != "-":
        options.sockname = parse_canaddr(operands[0], options.sockname)
    if len(operands) > 1 and operands[1] != "-":
        options.peername = parse_canaddr(operands[1], J1939Address())
    return options


def send_file(
    sock: socket.socket,
    infile: BinaryIO,
    count: int,
    peer: tuple | None = None,
) -> int:
    """Send up to ``count`` bytes of ``infile`` in datagrams; return the bytes sent.

    Datagrams go to ``peer`` when given, else to the connected peer. Raises
    OSError when a datagram is not sent whole.
    """
    buf_size = min(J1939_MAX_ETP_PACKET_SIZE, count)
    total = 0
    while count > 0:
        chunk = infile.read(min(buf_size, count))
        if not chunk:
            break
        if peer is not None:
            sent = sock.sendto(chunk, peer)
        else:
            sent = sock.send(chunk)
        if sent == 0:
            raise OSError("sendfile: write() transferred 0 bytes")
        if sent != len(chunk):
            raise OSError(f"sendfile: write() not full transfer: {sent} {len(chunk)}")
        count -= sent
        total += sent
    return total


def receive(sock: socket.socket, outfile: BinaryIO) -> None:
    """Copy every received datagram to ``outfile`` until the socket fails."""
    while True:
        data, _peer = sock.recvfrom(J1939_MAX_ETP_PACKET_SIZE)
        outfile.write(data)
        outfile.flush()


def _file_size(infile: BinaryIO) -> int:
    size = infile.seek(0, os.SEEK_END)
    infile.seek(0, os.SEEK_SET)
    return size


def _open_socket(options: JcatOptions) -> socket.socket:
    sock = socket.socket(AF_CAN, socket.SOCK_DGRAM, CAN_J1939)
    try:
        if options.todo_prio >= 0:
            sock.setsockopt(SOL_CAN_J1939, SO_J1939_SEND_PRIO, options.todo_prio)
        sock.bind(options.sockname.sockaddr())
        if options.todo_connect:
            if options.peername is None:
                raise ValueError("no peername supplied")
            sock.connect(options.peername.sockaddr())
    except BaseException:
        sock.close()
        raise
    return sock


def _send(sock: socket.socket, infile: BinaryIO, options: JcatOptions) -> int:
    count = options.todo_send
    if options.todo_filesize:
        count = _file_size(infile)
    if not count:
        return 1
    peer = None
    if options.peername is not None and not options.todo_connect:
        peer = options.peername.sockaddr()
    send_file(sock, infile, count, peer)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        options = parse_args(argv)
    except getopt.GetoptError:
        sys.stderr.write(HELP)
        return 1

    stdin = sys.stdin.buffer
    infile: BinaryIO = stdin
    if options.infile:
        try:
            infile = open(options.infile, "rb")
        except OSError as exc:
            print(f"jcat: can't open input file: {exc.strerror}", file=sys.stderr)
            return 1

    try:
        with _open_socket(options) as sock:
            if options.todo_recv:
                receive(sock, sys.stdout.buffer)
                return 0
            return _send(sock, infile, options)
    except (OSError, ValueError) as exc:
        print(f"jcat: {exc}", file=sys.stderr)
        return 1
    finally:
        if infile is not stdin:
            infile.close()