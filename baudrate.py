#!/usr/bin/env python3
"""
Baudrate
========
Quickly identify the baud rate of an unknown serial port, such as the console
header on an embedded board.

Serial settings are fixed at 8 data bits, no parity, 1 stop bit and no
handshaking; only the speed is searched for.

Two ways to search:

- Auto (default): start at the highest common rate and step down every few
  seconds until the incoming bytes look like readable text.
- Manual (-m): watch the output and step through rates with the up/down
  arrow keys (or u/d) until it becomes legible.

When done, the settings are printed (or saved) as a minicom configuration.

Dependencies
------------
pip install pyserial colorama

Examples
--------
# Auto detect on the default port
baudrate /dev/ttyUSB0

# Manual mode, no prompts
baudrate -m -p /dev/ttyUSB1

# Wait 3s per rate, save as /etc/minicom/minirc.board and launch minicom
baudrate -t 3 -n board /dev/ttyUSB0

Hotkeys while running:
  CTRL+C  -> quit cleanly (settings are still reported)
"""
import argparse
import sys
from typing import Callable, List, Optional

import serial

from console import Console
from detect import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_DEVICE,
    DEFAULT_WAIT_PERIOD,
    CycleController,
    Options,
)
from minicom import MINICOM_BIN, emit_config, prompt_name
from port import SerialLink
from rates import DEFAULT_RATES, format_rates
from scorer import DEFAULT_THRESHOLD

VERSION = "0.1"


# ----------------------------- Arguments ------------------------------------

def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {n}")
    return n


def positive_float(value: str) -> float:
    try:
        n = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="baudrate",
        description=f"Baudrate v{VERSION} - identify the baud rate of a serial port (8N1, no flow control)",
    )
    ap.add_argument("device", nargs="?", default=DEFAULT_DEVICE,
                    help=f"Serial device (default: {DEFAULT_DEVICE})")
    ap.add_argument("-t", "--wait", dest="wait_period", type=positive_float, default=DEFAULT_WAIT_PERIOD,
                    help=f"Seconds to wait before switching baud rates in auto detect mode [{DEFAULT_WAIT_PERIOD:g}]")
    ap.add_argument("-c", "--threshold", type=positive_int, default=DEFAULT_THRESHOLD,
                    help=f"Minimum ASCII character threshold used during auto detect mode [{DEFAULT_THRESHOLD}]")
    ap.add_argument("-n", "--name", default=None,
                    help=f"Minicom configuration name; {MINICOM_BIN} is started automatically")
    ap.add_argument("-E", "--no-exec", action="store_true",
                    help=f"Do not invoke {MINICOM_BIN} when -n is specified")
    ap.add_argument("-m", "--manual", action="store_true", help="Use manual mode")
    ap.add_argument("-b", "--list-rates", action="store_true", help="Display supported baud rates and exit")
    ap.add_argument("-p", "--no-prompt", action="store_true", help="Disable interactive prompts")
    ap.add_argument("-q", "--quiet", action="store_true", help="Enable quiet mode (implies -p)")
    ap.add_argument("--clamp", action="store_true",
                    help="Stop at the lowest/highest rate instead of wrapping around")
    ap.add_argument("--config-dir", default=DEFAULT_CONFIG_DIR,
                    help=f"Directory minicom configurations are saved to [{DEFAULT_CONFIG_DIR}]")
    ap.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return ap


def options_from_args(args: argparse.Namespace) -> Options:
    verbose = not args.quiet
    return Options(
        device=args.device,
        manual=args.manual,
        verbose=verbose,
        prompt=verbose and not args.no_prompt,
        wait_period=args.wait_period,
        threshold=args.threshold,
        name=args.name,
        launch_minicom=args.name is not None and not args.no_exec,
        config_dir=args.config_dir,
        wrap=not args.clamp,
    )


# ----------------------------- Main -----------------------------------------

def run(options: Options, console: Optional[Console] = None,
        link_factory: Callable[..., SerialLink] = SerialLink,
        controller_factory: Callable[..., CycleController] = CycleController,
        read_line: Optional[Callable[[], str]] = None) -> int:
    console = console or Console(verbose=options.verbose)

    link = link_factory(options.device, console)
    start_rate = DEFAULT_RATES.at(DEFAULT_RATES.default_index()).rate
    try:
        link.open(start_rate)
    except (serial.SerialException, OSError) as e:
        console.fail(f"Failed to open serial port {options.device}: {e}")
        return 1

    try:
        controller = controller_factory(options, link, console=console)
        result = controller.run()
    except BaseException:
        # The controller restores the link itself once running; this covers
        # failures before that point. restore() is a no-op on a closed link.
        link.restore()
        raise

    name = options.name
    if name is None and options.prompt:
        try:
            name = prompt_name(read_line, console)
        except KeyboardInterrupt:
            name = ""
    emit_config(
        options.device,
        result.candidate.label,
        name,
        options.config_dir,
        run_minicom=options.launch_minicom,
        console=console,
    )
    return 0 if result.ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    Console.setup()
    args = build_parser().parse_args(argv)

    if args.list_rates:
        sys.stderr.write(format_rates(DEFAULT_RATES))
        return 0

    try:
        return run(options_from_args(args))
    except KeyboardInterrupt:
        print("\nStopped by user.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
