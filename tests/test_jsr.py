import getopt

import pytest

from canutil import jsr
from canutil.constants import J1939_NO_ADDR


def test_defaults():
    settings = jsr.parse_args([])
    assert settings.priority == 6
    assert settings.pkt_len == 0
    assert settings.sendflags == 0
    assert not settings.prio_defined
    assert settings.src is None and settings.dst is None


def test_priority_short_option():
    settings = jsr.parse_args(["-p", "3"])
    assert settings.priority == 3
    assert settings.prio_defined


def test_long_options():
    settings = jsr.parse_args(["--priority=2", "--serialize", "--size", "100", "-v", "-v"])
    assert settings.priority == 2
    assert settings.sendflags == jsr.MSG_SYN
    assert settings.pkt_len == 100
    assert settings.verbose == 2


def test_serialize_flag():
    assert jsr.parse_args(["-S"]).sendflags == jsr.MSG_SYN


def test_zero_size_rejected():
    with pytest.raises(ValueError):
        jsr.parse_args(["-s", "0"])


def test_addresses():
    settings = jsr.parse_args(["nosuchif0:80", "ab"])
    assert settings.src.addr == 0x80
    assert settings.dst.addr == 0xAB
    assert settings.dst.ifindex == 0


def test_source_name_address():
    settings = jsr.parse_args(["nosuchif0:1122334455667788"])
    assert settings.src.name == 0x1122334455667788
    assert settings.src.addr == J1939_NO_ADDR


def test_bad_address():
    with pytest.raises(ValueError):
        jsr.parse_args(["averyveryverylonginterface:80"])


def test_unknown_and_help_options():
    with pytest.raises(getopt.GetoptError):
        jsr.parse_args(["-z"])
    with pytest.raises(getopt.GetoptError):
        jsr.parse_args(["--help"])


def test_main_errors():
    assert jsr.main(["-z"]) == 1
    assert jsr.main(["-s", "0"]) == 1
    assert jsr.main(["averyveryverylonginterface:80"]) == 1