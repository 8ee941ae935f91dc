"""Entry point that reports fatal startup errors."""

from __future__ import annotations

from ffpipe.logger import get_logger

logger = get_logger()


def safe_main() -> None:
    logger.debug("Starting ffpipe")
    try:
        from ffpipe.cli import main as cli_main
    except ImportError as e:  # pragma: no cover - missing dependency
        logger.exception("Import failed")
        raise SystemExit(f"Failed to start: {e}")

    cli_main()


if __name__ == "__main__":
    safe_main()
