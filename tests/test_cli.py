from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from disk_images import build_d64
from matrix65 import cli
from matrix65.config import Matrix65Config, MonitorTiming
from matrix65.transport import EmulatedMonitorTransport


class DeviceFactory:
    def __init__(self) -> None:
        self.device = EmulatedMonitorTransport()
        self.configs: List[Matrix65Config] = []

    def __call__(self, config: Matrix65Config) -> EmulatedMonitorTransport:
        self.configs.append(config)
        return self.device


@pytest.fixture
def factory(monkeypatch: pytest.MonkeyPatch) -> DeviceFactory:
    monkeypatch.setattr(cli, "Matrix65Config", _immediate_config)
    return DeviceFactory()


def _immediate_config() -> Matrix65Config:
    return Matrix65Config(timing=MonitorTiming.immediate())


def test_parse_address_accepts_common_notations() -> None:
    assert cli.parse_address("4096") == 4096
    assert cli.parse_address("0x4000") == 0x4000
    assert cli.parse_address("$d020") == 0xD020


def test_hexdump_groups_bytes() -> None:
    assert cli.hexdump(bytes(range(10))) == [
        "0x00 0x01 0x02 0x03 0x04 0x05 0x06 0x07",
        "0x08 0x09",
    ]


def test_peek_prints_hexdump(
    factory: DeviceFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    factory.device.load(0xD020, b"\x0e\x06")

    assert cli.main(["-p", "loop", "peek", "0xd020", "-l", "2"], factory) == 0

    assert capsys.readouterr().out == "0x0e 0x06\n"
    assert factory.configs[0].port == "loop"


def test_peek_writes_outfile(factory: DeviceFactory, tmp_path: Path) -> None:
    factory.device.load(0x0801, b"\x01\x02\x03")
    outfile = tmp_path / "dump.bin"

    cli.main(["peek", "2049", "--length", "3", "--outfile", str(outfile)], factory)

    assert outfile.read_bytes() == b"\x01\x02\x03"


def test_poke_value_and_file(factory: DeviceFactory, tmp_path: Path) -> None:
    raw = tmp_path / "raw.bin"
    raw.write_bytes(b"\xaa\xbb")

    assert cli.main(["poke", "0xd021", "--value", "0x05"], factory) == 0
    assert cli.main(["poke", "0x1000", "--file", str(raw)], factory) == 0

    assert factory.device.peek(0xD021, 1) == b"\x05"
    assert factory.device.peek(0x1000, 2) == b"\xaa\xbb"


def test_poke_outside_16_bits_reports_error(
    factory: DeviceFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(["poke", "0xffff", "--value", "1"], factory) == 1

    assert "16-bit address space" in capsys.readouterr().err
    assert factory.device.commands == []


def test_prg_loads_and_runs(factory: DeviceFactory, tmp_path: Path) -> None:
    program = tmp_path / "hello.prg"
    program.write_bytes(b"\x01\x20\x0b\x20")

    assert cli.main(["prg", str(program), "--run"], factory) == 0

    assert factory.device.peek(0x2001, 2) == b"\x0b\x20"
    assert factory.device.keystrokes[-1] == (0x01, 0x7F)


def test_prg_with_bad_extension_never_opens_port(
    factory: DeviceFactory, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_bytes(b"\x01\x08")

    assert cli.main(["prg", str(notes)], factory) == 1

    assert "invalid file extension" in capsys.readouterr().err
    assert factory.configs == []


def test_prg_lists_disk_image_programs(
    factory: DeviceFactory, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    image = tmp_path / "demo.d64"
    image.write_bytes(
        build_d64([("FIRST", 0x82, b"\x01\x08"), ("SECOND", 0x82, b"\x01\x20")])
    )

    assert cli.main(["prg", str(image), "--list"], factory) == 0

    assert capsys.readouterr().out == "[0] FIRST.prg\n[1] SECOND.prg\n"
    assert factory.configs == []


def test_type_and_reset_commands(factory: DeviceFactory) -> None:
    assert cli.main(["type", "go\\r"], factory) == 0
    assert factory.device.keystrokes == [(0x1A, 0x7F), (0x26, 0x7F), (0x01, 0x7F)]

    assert cli.main(["reset"], factory) == 0
    assert factory.device.reset_count == 1


def test_mode_reports_detected_mode(
    factory: DeviceFactory, capsys: pytest.CaptureFixture[str]
) -> None:
    factory.device.set_native_mode(False)

    cli.main(["mode"], factory)

    assert capsys.readouterr().out == "c64\n"


def test_missing_port_is_reported(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["reset"]) == 1

    assert "no serial port given" in capsys.readouterr().err


def test_config_file_supplies_port(tmp_path: Path) -> None:
    config_path = tmp_path / "matrix65.toml"
    config_path.write_text(
        '[matrix65]\nport = "loop"\n[matrix65.timing]\nwrite_delay = 0\n'
        "keypress_delay = 0\nreset_delay = 0\nmode_switch_delay = 0\n",
        encoding="utf-8",
    )
    factory = DeviceFactory()

    assert cli.main(["--config", str(config_path), "-b", "9600", "reset"], factory) == 0

    assert factory.configs[0].port == "loop"
    assert factory.configs[0].baud_rate == 9600


def test_malformed_config_file_is_reported(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config_path = tmp_path / "broken.toml"
    config_path.write_text("[matrix65\nport = 'loop'\n", encoding="utf-8")
    factory = DeviceFactory()

    assert cli.main(["--config", str(config_path), "-p", "loop", "mode"], factory) == 1

    assert "invalid TOML" in capsys.readouterr().err
    assert factory.configs == []
