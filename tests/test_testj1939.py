import getopt

import pytest

from canutil import testj1939 as tj
from canutil.j1939addr import J1939Address


def test_vector_pattern():
    assert tj.test_vector(16).hex() == "0123456789abcdef" * 2


def test_vector_full_size_repeats():
    full = tj.test_vector(128)
    assert len(full) == 128
    assert full[:8] == full[8:16]
    assert tj.test_vector(5) == full[:5]


def test_vector_empty():
    assert tj.test_vector(0) == b""


def test_vector_too_large():
    with pytest.raises(ValueError):
        tj.test_vector(129)


def test_format_short_packet():
    assert tj.format_received(bytes([0, 1, 2]), 0x20, 0x12300) == "20 12300: 00 01 02"


def test_format_with_name():
    text = tj.format_received(b"\x01", 0x20, 0x12300, 0x1122, True)
    assert text.split()[0] == "0000000000001122"


def test_format_name_omitted_without_flag_or_name():
    plain = tj.format_received(b"\x01", 0x20, 0x12300)
    assert tj.format_received(b"\x01", 0x20, 0x12300, 0x1122, False) == plain
    assert tj.format_received(b"\x01", 0x20, 0x12300, 0, True) == plain


def test_parse_defaults():
    settings = tj.parse_args([])
    assert settings.todo_send == 0
    assert settings.todo_prio == -1
    assert settings.wait is None
    assert settings.sockname == J1939Address()
    assert settings.peername is None


def test_parse_send_default_and_limit():
    assert tj.parse_args(["-s"]).todo_send == 8
    with pytest.raises(ValueError):
        tj.parse_args(["-s200"])


def test_parse_wait():
    assert tj.parse_args(["-w"]).wait == 1.0
    assert tj.parse_args(["-w2.5"]).wait == 2.5


def test_parse_rebind_increments_address():
    settings = tj.parse_args(["-b", ":0x20"])
    assert settings.todo_rebind
    assert settings.sockname.addr == 0x21


def test_parse_flags_and_peer():
    settings = tj.parse_args(["-r", "-e", "-n", "-o", "-c", "-p", "3", "-", ":0x90"])
    assert settings.todo_recv and settings.todo_echo and settings.todo_names
    assert settings.no_bind and settings.todo_connect
    assert settings.todo_prio == 3
    assert settings.peername.addr == 0x90


def test_parse_unknown_option():
    with pytest.raises(getopt.GetoptError):
        tj.parse_args(["-x"])


def test_main_usage_and_bad_size():
    assert tj.main(["-x"]) == 1
    assert tj.main(["-s999"]) == 1