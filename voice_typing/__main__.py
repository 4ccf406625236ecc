"""Unified entry point for voice-typing."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from voice_typing.autostart import AUTOSTART_FLAG
from voice_typing.logging_config import setup_logging


def main(argv: Sequence[str] | None = None) -> int:
    raw_args = list(argv) if argv is not None else sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="python -m voice_typing",
        description="Launch the Voice Typing GUI or CLI interface.",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--mode",
        choices=["cli", "gui"],
        default="gui",
        help="Which interface to launch (defaults to gui)",
    )
    parser.add_argument(
        AUTOSTART_FLAG,
        action="store_true",
        dest="autostart",
        help="Started at login: open the GUI minimized",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level",
    )
    parser.add_argument(
        "-h",
        "--help",
        action="store_true",
        dest="show_help",
        help="Show this help message and exit",
    )

    args, remainder = parser.parse_known_args(raw_args)
    setup_logging(getattr(logging, args.log_level))

    if args.mode == "cli":
        from voice_typing.cli import main as cli_main

        if args.show_help:
            parser.print_help()
            print()
            return cli_main(["--help"])
        return cli_main(list(remainder))

    # GUI mode ---------------------------------------------------------
    if args.show_help:
        parser.print_help()
        print("\nGUI mode does not accept additional arguments.")
        return 0

    if remainder:
        parser.error("GUI mode does not accept additional arguments: " + " ".join(remainder))

    from voice_typing.gui import main as gui_main

    gui_main(start_minimized=args.autostart)
    return 0


if __name__ == "__main__":
    sys.exit(main())
