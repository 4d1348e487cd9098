import errno
import socket

import pytest

from canutil.constants import J1939_NO_ADDR, J1939_NO_NAME, J1939_NO_PGN, J1939_PGN_REQUEST
from canutil.j1939addr import (
    J1939Address,
    addr2str,
    interface_index,
    interface_name,
    parse_canaddr,
    str2addr,
)

INTERFACES = [(1, "lo"), (5, "vcan0")]


@pytest.fixture(autouse=True)
def fake_interfaces(monkeypatch):
    def nametoindex(name):
        for index, ifname in INTERFACES:
            if ifname == name:
                return index
        raise OSError(errno.ENODEV, "No such device")

    monkeypatch.setattr(socket, "if_nameindex", lambda: list(INTERFACES))
    monkeypatch.setattr(socket, "if_nametoindex", nametoindex)


def test_defaults():
    address = J1939Address()
    assert (address.ifindex, address.name, address.pgn, address.addr) == (
        0,
        J1939_NO_NAME,
        J1939_NO_PGN,
        J1939_NO_ADDR,
    )
    assert addr2str(address) == "-"


def test_interface_index_by_number_and_name():
    assert interface_index("0x10") == interface_index("16")
    assert interface_index("vcan0") == 5
    assert interface_index("nope0") == 0
    assert interface_index("") == 0


def test_interface_name_lookup():
    assert interface_name(5) == "vcan0"
    assert interface_name(9) is None


def test_parse_canaddr_source_and_pgn():
    address = parse_canaddr(":0x90,0x12300")
    assert address.addr == 0x90
    assert address.pgn == 0x12300
    assert address.ifindex == 0
    assert address.name == J1939_NO_NAME


def test_parse_canaddr_interface():
    address = parse_canaddr("vcan0:0x80")
    assert address.ifindex == 5
    assert address.addr == 0x80


def test_parse_canaddr_unknown_interface_gives_zero():
    assert parse_canaddr("nope0").ifindex == 0


def test_parse_canaddr_name_and_empty_fields_keep_values():
    base = J1939Address(addr=0x20, pgn=0x100)
    address = parse_canaddr(":,,0x1234", base)
    assert address.name == 0x1234
    assert address.addr == base.addr
    assert address.pgn == base.pgn
    assert base.name == J1939_NO_NAME


def test_parse_canaddr_number_bases_agree():
    assert parse_canaddr(":010").addr == parse_canaddr(":0x8").addr
    assert parse_canaddr(":16").addr == parse_canaddr(":0x10").addr


def test_str2addr_interface_only():
    address = str2addr("vcan0")
    assert address == J1939Address(ifindex=5)


def test_str2addr_numeric_interface():
    assert str2addr("80").ifindex == 80


def test_str2addr_empty():
    assert str2addr("") == J1939Address()


def test_str2addr_source_address_and_pgn():
    address = str2addr(":80,12300")
    assert address.addr == 0x80
    assert address.pgn == 0x12300
    assert address.name == J1939_NO_NAME


def test_str2addr_name():
    address = str2addr("1234567890abcdef")
    assert address.name == 0x1234567890ABCDEF
    assert address.addr == J1939_NO_ADDR


def test_str2addr_interface_too_long():
    with pytest.raises(ValueError):
        str2addr("a" * 16 + ":80")


@pytest.mark.parametrize("text", ["vcan0:80,12300", "lo:1234567890abcdef", "vcan0:-"])
def test_string_round_trip(text):
    assert addr2str(str2addr(text)) == text


def test_addr2str_source_and_pgn():
    assert addr2str(J1939Address(addr=0x80, pgn=0x12300)) == "80,12300"


def test_addr2str_unknown_interface():
    assert addr2str(J1939Address(ifindex=9, addr=0x80)).startswith("#9:")


def test_addr2str_name_with_request_pgn_shows_address():
    address = J1939Address(name=0x1234, addr=0x80, pgn=J1939_PGN_REQUEST)
    text = addr2str(address)
    assert text.startswith(f"{0x1234:016x}.80")
    assert str(address) == text


def test_address_round_trip_through_text():
    address = J1939Address(ifindex=5, name=0xFEDCBA9876543210, pgn=0x3FFFF)
    assert str2addr(addr2str(address)) == address


def test_sockaddr_without_interface():
    address = J1939Address(addr=0x80, pgn=0x12300)
    assert address.sockaddr() == ("", J1939_NO_NAME, 0x12300, 0x80)


def test_sockaddr_with_interface():
    assert J1939Address(ifindex=5).sockaddr()[0] == "vcan0"


def test_sockaddr_unknown_interface():
    with pytest.raises(OSError):
        J1939Address(ifindex=9).sockaddr()