from __future__ import annotations

import argparse
import logging
import signal

from rich.logging import RichHandler

from restockwatch.config import ConfigError
from restockwatch.models import Verdict
from restockwatch.runner import build_service

LOG = logging.getLogger("restockwatch")


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


def _interrupt_on_sigterm() -> None:
    # unwinds an in-flight render the same way Ctrl-C does
    signal.signal(signal.SIGTERM, signal.default_int_handler)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="restockwatch")
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    for cmd in ("run", "once"):
        p = sub.add_parser(cmd)
        p.add_argument("--config", help="YAML file overriding target and render settings")
        p.add_argument("--dry-run", action="store_true", help="log alerts instead of sending them")
        p.add_argument("--headed", action="store_true", help="show the browser window")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        service = build_service(
            config_path=args.config,
            dry_run=args.dry_run,
            headless=False if args.headed else None,
        )
    except ConfigError as exc:
        LOG.error("configuration error: %s", exc)
        raise SystemExit(2) from exc

    _interrupt_on_sigterm()

    if args.command == "once":
        try:
            verdict = service.run_once()
        except KeyboardInterrupt:
            LOG.info("interrupted, check abandoned")
            return 130
        return 0 if verdict is Verdict.AVAILABLE else 1

    if args.command == "run":
        try:
            service.run_forever()
        except KeyboardInterrupt:
            service.stop()
            LOG.info("interrupted, shutting down")
        return 0

    raise RuntimeError(f"unsupported command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
