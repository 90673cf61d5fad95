"""CLI entrypoint for cotax-chat."""

from __future__ import annotations

import argparse
from importlib import metadata
from pathlib import Path
from typing import Sequence

from .app import CotaxChatApp
from .config import ensure_config_dir, load_config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cotax-chat", description="Cotax personal tax assistant chat"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a config.toml (defaults to the user config directory)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the chat loop."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("cotax-chat")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"cotax-chat {version}")
        return

    ensure_config_dir()
    app = CotaxChatApp(load_config(args.config))
    app.run()


if __name__ == "__main__":
    main()
