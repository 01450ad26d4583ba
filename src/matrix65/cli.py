"""Matrix mode serial communicator for the MEGA65."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List, Sequence

from .config import ConfigError, Matrix65Config, load_config
from .errors import Matrix65Error, ValidationError
from .images import FileByteSource, ImageLoader
from .keyboard import KeyInjector
from .modes import ModeController
from .monitor import MonitorSession
from .transport import SerialTransport, Transport


LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[Matrix65Config], Transport]


def parse_address(text: str) -> int:
    """Accept decimal, ``0x`` hexadecimal, ``$`` hexadecimal or octal input."""

    cleaned = text.strip()
    if cleaned.startswith("$"):
        cleaned = "0x" + cleaned[1:]
    try:
        value = int(cleaned, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid address {text!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"address must not be negative: {text!r}")
    return value


def parse_byte(text: str) -> int:
    value = parse_address(text)
    if value > 0xFF:
        raise argparse.ArgumentTypeError(f"value {text!r} does not fit in a byte")
    return value


def hexdump(data: bytes, bytes_per_line: int = 8) -> List[str]:
    return [
        " ".join(f"0x{byte:02x}" for byte in data[start : start + bytes_per_line])
        for start in range(0, len(data), bytes_per_line)
    ]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed arguments for the matrix65 CLI."""

    parser = argparse.ArgumentParser(prog="matrix65", description=__doc__)
    parser.add_argument("-p", "--port", default=None, help="Serial device name")
    parser.add_argument(
        "-b",
        "--baud",
        type=int,
        default=None,
        help="Baud rate for serial communication (default: 2000000)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML file with [matrix65] settings",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help="Logging verbosity (default: WARNING)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="log_level",
        action="store_const",
        const="DEBUG",
        help="Shorthand for --log-level DEBUG",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    prg = commands.add_parser("prg", help="Push and optionally run a program file")
    prg.add_argument("file", help="Program to load (*.prg, *.d64, *.d81)")
    prg.add_argument("--reset", action="store_true", help="Reset before loading")
    prg.add_argument("-r", "--run", action="store_true", help="Run after loading")
    prg.add_argument(
        "--select",
        type=int,
        default=None,
        help="Index of the program to load from a disk image",
    )
    prg.add_argument(
        "--list",
        action="store_true",
        help="List programs on a disk image without contacting the device",
    )

    type_cmd = commands.add_parser("type", help="Send key presses")
    type_cmd.add_argument("text", help='Text to type; use "\\r" for return')

    reset = commands.add_parser("reset", help="Reset the MEGA65")
    reset.add_argument("--c64", action="store_true", help="Switch to C64 mode afterwards")

    peek = commands.add_parser("peek", help="Peek into memory")
    peek.add_argument("address", type=parse_address, help="Address, e.g. 4096 or 0x4000")
    peek.add_argument("-l", "--length", type=int, default=1, help="Number of bytes")
    peek.add_argument("-o", "--outfile", type=Path, default=None, help="Save to file")

    poke = commands.add_parser("poke", help="Poke into memory")
    poke.add_argument("address", type=parse_address, help="16-bit target address")
    source = poke.add_mutually_exclusive_group(required=True)
    source.add_argument("--value", type=parse_byte, help="Single byte to write")
    source.add_argument("-f", "--file", default=None, help="Raw file to write")

    commands.add_parser("mode", help="Report whether the MEGA65 is in C64 or C65 mode")

    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> Matrix65Config:
    config = load_config(args.config) if args.config is not None else Matrix65Config()
    return config.with_overrides(port=args.port, baud_rate=args.baud)


def open_serial(config: Matrix65Config) -> Transport:
    if not config.port:
        raise ConfigError("no serial port given; use --port or the config file")
    return SerialTransport.open(
        config.port, config.baud_rate, timeout=config.timing.read_timeout
    )


def run_command(
    args: argparse.Namespace,
    config: Matrix65Config,
    transport_factory: TransportFactory = open_serial,
    loader: ImageLoader | None = None,
) -> int:
    loader = loader or ImageLoader(FileByteSource())

    if args.command == "prg":
        if args.list:
            catalog = loader.open_catalog(args.file)
            for index, name in enumerate(catalog.candidates()):
                print(f"[{index}] {name}.prg")
            return 0
        # Programs are resolved before the port is opened.
        program = loader.load_program(args.file, args.select)
    elif args.command == "peek" and args.length < 0:
        raise ValidationError("length must not be negative")

    transport = transport_factory(config)
    try:
        session = MonitorSession(transport, config.timing)
        controller = ModeController(session)
        if args.command == "prg":
            controller.prepare_and_transfer(program, args.reset, args.run)
        elif args.command == "type":
            KeyInjector(session).type_text(args.text)
        elif args.command == "reset":
            controller.reset(to_compat=args.c64)
        elif args.command == "peek":
            block = session.peek(args.address, args.length)
            if args.outfile is not None:
                LOGGER.debug("Saving %d bytes to %s", len(block), args.outfile)
                args.outfile.write_bytes(block)
            else:
                print("\n".join(hexdump(block)))
        elif args.command == "poke":
            data = (
                FileByteSource().read_bytes(args.file)
                if args.file is not None
                else bytes([args.value])
            )
            session.poke(args.address, data)
        elif args.command == "mode":
            print(controller.detect().value)
    finally:
        transport.close()
    return 0


def main(
    argv: Sequence[str] | None = None,
    transport_factory: TransportFactory = open_serial,
) -> int:
    """Entry point for the ``matrix65`` command."""

    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))
    try:
        config = resolve_config(args)
        return run_command(args, config, transport_factory)
    except (Matrix65Error, ConfigError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    raise SystemExit(main())
