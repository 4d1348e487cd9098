import io

import pytest

from canutil.constants import (
    CAN_EFF_FLAG,
    CAN_ERR_FLAG,
    CAN_MAX_DLEN,
    CAN_MTU,
    CAN_RTR_FLAG,
    CANFD_BRS,
    CANFD_ESI,
    CANFD_MAX_DLEN,
    CANFD_MTU,
)
from canutil.frame import (
    CanFrame,
    asc2nibble,
    can_dlc2len,
    can_len2dlc,
    fprint_canframe,
    hexstring2data,
    parse_canframe,
    sprint_canframe,
)


def test_parse_standard_empty():
    frame = parse_canframe("123#")
    assert frame.can_id == 0x123
    assert frame.length == 0
    assert not frame.fd
    assert frame.mtu() == CAN_MTU


def test_parse_extended_empty():
    frame = parse_canframe("12345678#")
    assert frame.can_id == 0x12345678 | CAN_EFF_FLAG
    assert frame.length == 0


@pytest.mark.parametrize(
    "text, can_id, length",
    [
        ("123#R", 0x123, 0),
        ("123#R0", 0x123, 0),
        ("123#R7", 0x123, 7),
        ("7A1#r", 0x7A1, 0),
    ],
)
def test_parse_remote_frames(text, can_id, length):
    frame = parse_canframe(text)
    assert frame.can_id == can_id | CAN_RTR_FLAG
    assert frame.length == length


def test_parse_single_byte():
    frame = parse_canframe("123#00")
    assert frame.length == 1
    assert frame.data == b"\x00"


@pytest.mark.parametrize(
    "text",
    ["123#1122334455667788", "123#11.22.33.44.55.66.77.88", "123#11.2233.44556677.88"],
)
def test_parse_data_with_optional_separators(text):
    frame = parse_canframe(text)
    assert frame.can_id == 0x123
    assert frame.length == 8
    assert frame.data == bytes.fromhex("1122334455667788")


def test_parse_error_frame_has_no_eff_flag():
    frame = parse_canframe("32345678#112233")
    assert frame.can_id == 0x32345678
    assert frame.can_id & CAN_ERR_FLAG
    assert not frame.can_id & CAN_EFF_FLAG


@pytest.mark.parametrize(
    "text, flags, length",
    [
        ("123##0112233", 0, 3),
        ("123##1112233", CANFD_BRS, 3),
        ("123##2112233", CANFD_ESI, 3),
        ("123##3", CANFD_ESI | CANFD_BRS, 0),
    ],
)
def test_parse_fd_frames(text, flags, length):
    frame = parse_canframe(text)
    assert frame.fd
    assert frame.flags == flags
    assert frame.length == length
    assert frame.mtu() == CANFD_MTU


def test_parse_classic_ignores_data_beyond_eight_bytes():
    frame = parse_canframe("123#112233445566778899")
    assert frame.length == CAN_MAX_DLEN
    assert frame.data == bytes.fromhex("1122334455667788")


@pytest.mark.parametrize("text", ["", "12#", "123#1", "123#XY", "12345#00", "123##", "G23#00"])
def test_parse_rejects_invalid_text(text):
    with pytest.raises(ValueError):
        parse_canframe(text)


@pytest.mark.parametrize(
    "text",
    [
        "12345678#112233",
        "12345678#R",
        "12345678#R5",
        "32345678#112233",
        "123##0112233",
        "123##2112233",
        "123#",
        "123#R7",
    ],
)
def test_compact_round_trip(text):
    assert sprint_canframe(parse_canframe(text)) == text


@pytest.mark.parametrize("text", ["123#11.22.33.44.55.66.77.88", "123##0.11.22.33", "123##1"])
def test_compact_round_trip_with_separator(text):
    assert sprint_canframe(parse_canframe(text), sep=True) == text


def test_sprint_clamps_to_maxdlen():
    frame = parse_canframe("123##0" + "AA" * 12)
    assert sprint_canframe(frame, maxdlen=CAN_MAX_DLEN) == "123#" + "AA" * 8


def test_sprint_lowercase_input_prints_uppercase():
    assert sprint_canframe(parse_canframe("7a1#abcd")) == "7A1#ABCD"


def test_fprint_writes_eol():
    stream = io.StringIO()
    fprint_canframe(stream, parse_canframe("123#00"), "\n")
    assert stream.getvalue() == "123#00\n"


def test_fprint_without_eol():
    stream = io.StringIO()
    fprint_canframe(stream, parse_canframe("123#00"), None)
    assert stream.getvalue() == "123#00"


def test_dlc2len_table():
    assert [can_dlc2len(dlc) for dlc in range(16)] == [
        0, 1, 2, 3, 4, 5, 6, 7, 8, 12, 16, 20, 24, 32, 48, 64,
    ]
    assert can_dlc2len(0x1F) == can_dlc2len(0x0F)


def test_len2dlc_round_trip_and_limits():
    for dlc in range(16):
        assert can_len2dlc(can_dlc2len(dlc)) == dlc
    assert can_len2dlc(CANFD_MAX_DLEN + 1) == 0xF
    for length in range(CANFD_MAX_DLEN + 1):
        assert can_dlc2len(can_len2dlc(length)) >= length


def test_asc2nibble():
    assert asc2nibble("0") == 0
    assert asc2nibble("a") == asc2nibble("A")
    assert asc2nibble("f") == 0xF
    with pytest.raises(ValueError):
        asc2nibble("g")


def test_hexstring2data_examples():
    assert hexstring2data("1234", 8)[:2] == b"\x12\x34"
    data = hexstring2data("001234", 8)
    assert data == b"\x00\x12\x34".ljust(8, b"\0")


@pytest.mark.parametrize("text", ["", "123", "zz", "11" * 9])
def test_hexstring2data_errors(text):
    with pytest.raises(ValueError):
        hexstring2data(text, 8)


def test_canframe_rejects_oversized_payload():
    with pytest.raises(ValueError):
        CanFrame(data=bytes(CANFD_MAX_DLEN + 1))


def test_canframe_padded_keeps_payload():
    frame = CanFrame(0x123, b"\x01\x02")
    assert frame.length == 2
    assert frame.padded[:2] == b"\x01\x02"
    assert len(frame.padded) == CANFD_MAX_DLEN