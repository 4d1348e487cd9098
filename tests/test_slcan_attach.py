import getopt

import pytest

from canutil.slcan_attach import main, parse_args, setup_commands


def test_setup_commands_full_sequence():
    assert setup_commands("6", "001C", True, False, True) == [
        b"C\rS6\r",
        b"C\rs001C\r",
        b"F\r",
        b"O\r",
    ]


def test_setup_commands_listen_overrides_open():
    assert setup_commands(None, None, False, True, True) == [b"L\r"]


def test_setup_commands_nothing_requested():
    assert setup_commands() == []


def test_setup_commands_every_command_ends_with_carriage_return():
    commands = setup_commands("3", "31C", True, False, True)
    assert all(command.endswith(b"\r") for command in commands)


def test_parse_args_flags_and_tty():
    settings = parse_args(["-w", "-o", "-f", "-s6", "-c", "/dev/ttyS1"])
    assert settings.tty == "/dev/ttyS1"
    assert settings.waitkey and settings.send_open and settings.send_close
    assert settings.read_status_flags
    assert settings.speed == "6"
    assert not settings.detach


def test_parse_args_name_and_detach():
    settings = parse_args(["-d", "-n", "can15", "/dev/ttyS1"])
    assert settings.detach
    assert settings.name == "can15"


@pytest.mark.parametrize(
    "argv",
    [
        ["-s", "12", "/dev/ttyS1"],
        ["-b", "1234567", "/dev/ttyS1"],
        ["-n", "a" * 16, "/dev/ttyS1"],
        [],
        ["/dev/ttyS1", "/dev/ttyS2"],
        ["-?", "/dev/ttyS1"],
        ["-x", "/dev/ttyS1"],
    ],
)
def test_parse_args_usage_errors(argv):
    with pytest.raises(getopt.GetoptError):
        parse_args(argv)


def test_main_usage_error_returns_failure(capsys):
    assert main(["-s", "12", "/dev/ttyS1"]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_main_missing_tty_returns_failure(tmp_path, capsys):
    missing = str(tmp_path / "missing")
    assert main([missing]) == 1
    assert missing in capsys.readouterr().err