from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .errors import AuthError, ConfigError, ExhaustedRetries, IoError, NetworkError
from .protocol import SessionStore, sign_request
from .runner import run_batch
from .settings import settings

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_INVENTORY = 2
EXIT_PARTIAL = 3


def _print_progress(total: int) -> None:
    print(f"\rReceiving data: {total} bytes", end="", file=sys.stderr, flush=True)


def cmd_run(args: argparse.Namespace) -> int:
    cfg = settings.model_copy()
    if args.queries_dir:
        cfg.queries_dir = Path(args.queries_dir)
    if args.output_dir:
        cfg.output_dir = Path(args.output_dir)
    try:
        report = asyncio.run(run_batch(cfg, args.server, on_progress=_print_progress))
    except (ConfigError, IoError) as e:
        print(e.message, file=sys.stderr)
        return EXIT_CONFIG
    except (AuthError, ExhaustedRetries, NetworkError) as e:
        print(e.message, file=sys.stderr)
        return EXIT_INVENTORY
    print(file=sys.stderr)
    for r in report.results:
        if not r.ok:
            target = "/".join(p for p in (r.group, r.agent, r.query) if p)
            print(f"FAILED {target}: {r.error}", file=sys.stderr)
    print(f"{report.succeeded} succeeded, {report.failed} failed")
    return EXIT_OK if report.ok else EXIT_PARTIAL


def _session_store() -> SessionStore:
    return SessionStore.from_path(settings.session_file, ttl_seconds=settings.session_ttl_seconds)


def cmd_session_show(_: argparse.Namespace) -> int:
    session = _session_store().load(settings.client_id)
    if session is None:
        print("No valid session.")
        return 1
    print(json.dumps(session.model_dump(), indent=2))
    return 0


def cmd_session_clear(_: argparse.Namespace) -> int:
    try:
        _session_store().clear()
    except IoError as e:
        print(e.message, file=sys.stderr)
        return EXIT_CONFIG
    print(f"Removed {settings.session_file}")
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    client_id = args.client_id or settings.client_id
    print(sign_request(client_id, args.timestamp, args.nonce, settings.client_key.get_secret_value()))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wqlrun",
        description="Run WQL query templates against inventory agents through a signed TLS query server",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run every query template against every agent")
    p_run.add_argument("server", help="Query server address, e.g. 192.168.1.100:8080")
    p_run.add_argument("--queries-dir", help="Directory of *.json query templates (default: wql_queries)")
    p_run.add_argument("--output-dir", help="Result directory (default: query_results)")
    p_run.set_defaults(func=cmd_run)

    p_session = sub.add_parser("session", help="Inspect or remove the persisted session")
    session_sub = p_session.add_subparsers(dest="session_cmd", required=True)
    session_sub.add_parser("show", help="Print the session if still valid").set_defaults(func=cmd_session_show)
    session_sub.add_parser("clear", help="Delete the session record").set_defaults(func=cmd_session_clear)

    p_sign = sub.add_parser("sign", help="Print the request signature for given fields")
    p_sign.add_argument("--client-id", help="Defaults to the configured client id")
    p_sign.add_argument("--timestamp", type=int, required=True)
    p_sign.add_argument("--nonce", required=True)
    p_sign.set_defaults(func=cmd_sign)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
