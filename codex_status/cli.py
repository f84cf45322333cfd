"""Command-line entry point for codex-status.

Usage:
    codex-status
    codex-status --watch --interval 5 --sound some
    codex-status --format recent,model,dir --label recent=++
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TextIO

from pydantic import ValidationError

from . import __version__
from .core import (
    ConfigError,
    SoundPlayer,
    StatusConfig,
    TerminalSink,
    WatchDriver,
    build_report,
    gather_statuses,
    load_config,
)
from .core.fields import FieldKind
from .core.sound import ReverbPreset, SoundMode

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    field_names = ", ".join(kind.value for kind in FieldKind)
    parser = argparse.ArgumentParser(
        prog="codex-status",
        description="Show a one-line status for the latest Codex session",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Fields: {field_names}

Watch mode keys:
  m  toggle mute    r  cycle reverb    +/-  volume    q  quit

Examples:
  # Latest session once
  codex-status

  # Refresh every 5 seconds with a sound for every assistant reply
  codex-status --watch --interval 5 --sound assistant

  # Custom field order and label
  codex-status --format recent,model,dir --label recent=++
        """,
    )

    parser.add_argument("--base", "-b", dest="base_dir", type=Path, help="Sessions directory (default: ~/.codex/sessions)")
    parser.add_argument("--watch", "-w", action="store_true", default=None, help="Keep refreshing until interrupted")
    parser.add_argument("--interval", "-n", type=float, help="Seconds between refreshes in watch mode (default: 15)")
    parser.add_argument("--limit", "-l", type=int, help="Maximum sessions to read (default: 1)")
    parser.add_argument("--minimal", "-m", action="store_true", default=None, help="Hide policy, activity and directory fields")
    parser.add_argument("--format", "-f", dest="format_order", help="Comma-separated field order")
    parser.add_argument(
        "--label",
        dest="labels",
        action="append",
        metavar="FIELD=TEXT",
        help="Override a field label (repeatable; empty TEXT hides the label)",
    )
    parser.add_argument("--sound", choices=[mode.value for mode in SoundMode], help="When to play alert sounds in watch mode")
    parser.add_argument("--sound-volume", type=int, help="Alert volume, 1-100")
    parser.add_argument("--sound-reverb", choices=[preset.value for preset in ReverbPreset], help="Alert reverb preset")
    parser.add_argument("--config", type=Path, help="Config file (default: ~/.config/codex-status/config.json)")
    parser.add_argument("--verbose", "-V", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--version", "-v", action="version", version=f"codex-status v{__version__}")
    return parser


def parse_labels(values: list[str] | None) -> dict[str, str] | None:
    """Turn repeated FIELD=TEXT arguments into a mapping."""
    if not values:
        return None
    labels: dict[str, str] = {}
    for value in values:
        if "=" not in value:
            raise ConfigError(f"Label override must look like FIELD=TEXT, got '{value}'")
        key, label = value.split("=", 1)
        labels[key.strip()] = label
    return labels


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_config(args: argparse.Namespace) -> StatusConfig:
    """Load the config file and apply command-line overrides."""
    config = load_config(args.config)
    labels = parse_labels(args.labels)
    if labels is not None:
        labels = {**config.label_overrides, **labels}
    overrides = {
        "base_dir": args.base_dir,
        "watch": args.watch,
        "interval": args.interval,
        "limit": args.limit,
        "minimal": args.minimal,
        "format_order": args.format_order,
        "label_overrides": labels,
        "sound": args.sound,
        "sound_volume": args.sound_volume,
        "sound_reverb": args.sound_reverb,
    }
    return config.merged(overrides)


def run_once(config: StatusConfig, sink: TerminalSink) -> None:
    options = config.display_options()
    status = gather_statuses(config.base_dir.resolve(), config.limit)
    sink.emit(build_report(status, options))


def run_watch(config: StatusConfig, sink: TerminalSink) -> None:
    driver = WatchDriver(
        base_dir=config.base_dir.resolve(),
        options=config.display_options(),
        sink=sink,
        interval=config.interval,
        limit=config.limit,
        player=SoundPlayer() if config.sound is not SoundMode.OFF else None,
    )
    driver.run()


def main(argv: list[str] | None = None, stdout: TextIO | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = resolve_config(args)
        # Unknown field names fail here, before anything is rendered
        config.display_options()
    except (ConfigError, ValidationError) as exc:
        print(f"codex-status: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    sink = TerminalSink(stdout or sys.stdout, clear=config.watch)
    try:
        if config.watch:
            run_watch(config, sink)
        else:
            run_once(config, sink)
        return 0
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        print(f"codex-status: {exc}", file=sys.stderr)
        if args.verbose:
            logger.exception("Unexpected error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
