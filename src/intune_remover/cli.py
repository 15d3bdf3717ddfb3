#!/usr/bin/env python3
"""Intune & Autopilot bulk device removal CLI.

Removes every device matching the given serial numbers from Intune and, for
Windows devices, from Windows Autopilot. Results are written to a timestamped
CSV file (``results_YYYYMMDDHHMM.csv`` or ``dryrun_results_YYYYMMDDHHMM.csv``).

Credentials come from a JSON connection file (``--connection``) or from the
AZURE_TENANT_ID / AZURE_CLIENT_ID / AZURE_CLIENT_SECRET environment variables.

Example Usage:
    $ intune-remover --connection conn.json --input devices.xlsx --dry-run
    $ intune-remover --connection conn.json --serial 5CG1234ABC --serial 5CG5678XYZ
    $ intune-remover --connection conn.json --input devices.csv --column Serial
    $ intune-remover --connection conn.json --check-secret

Exit codes:
    0  batch completed (per-device failures are reported in the CSV)
    1  credentials, configuration or input rejected
    2  invalid command line
    130  interrupted
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .api.applications import days_until_secret_expiry
from .api.auth import TokenManager
from .api.client import GraphClient
from .api.exceptions import RemoverError, ValidationError
from .config import ConnectionInfo, Settings, connection_from_env, load_connection_file
from .removal.adapters.csv_exporter import default_output_path, write_csv
from .removal.adapters.progress_sinks import LoggingProgressSink
from .removal.adapters.serial_loader import DEFAULT_SERIAL_COLUMN, load_serial_numbers
from .removal.use_cases.remove_devices import run_batch

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_connection(args: argparse.Namespace) -> ConnectionInfo:
    if args.connection:
        return load_connection_file(args.connection)
    return connection_from_env()


def load_serials(args: argparse.Namespace) -> list[str]:
    """Serials from --input first, then any --serial values, in order."""
    serials: list[str] = []
    if args.input:
        serials.extend(load_serial_numbers(args.input, column=args.column))
        print(f"[Main] Loaded {len(serials)} serial(s) from {args.input}")
    serials.extend(args.serial or [])
    return serials


async def check_secret(connection: ConnectionInfo, settings: Settings) -> int:
    """Print the days left on the connection's client secret."""
    if not connection.object_id or not connection.client_secret_id:
        raise ValidationError(
            "Secret check needs objectId and clientSecretId in the connection",
            field="object_id",
        )

    token_manager = TokenManager(
        tenant=connection.tenant,
        client_id=connection.client_id,
        client_secret=connection.client_secret,
        authority_url=settings.authority_url,
        scope=settings.graph_scope,
    )
    token = await token_manager.get_token()

    async with GraphClient(
        token,
        base_url=settings.graph_base_url,
        timeout_seconds=settings.request_timeout,
    ) as client:
        days = await days_until_secret_expiry(
            client, connection.object_id, connection.client_secret_id
        )

    if days <= 0:
        print(f"⚠️  App secret {connection.client_secret_id} has expired")
    else:
        print(f"✓ App secret expires in {days} day(s)")
    return 0


async def run_removal(
    serials: list[str],
    connection: ConnectionInfo,
    settings: Settings,
    dry_run: bool,
) -> int:
    start_time = datetime.now()
    mode = "DRY RUN" if dry_run else "LIVE"
    print(f"[Main] Starting {mode} removal of {len(serials)} serial(s) at {start_time.isoformat()}")

    result = await run_batch(
        serials,
        connection,
        dry_run,
        settings=settings,
        sink=LoggingProgressSink(),
    )
    path = write_csv(default_output_path(settings.output_dir, dry_run), result.rows())

    print("\n" + "=" * 60)
    print(f"REMOVAL COMPLETE ({mode})")
    print("=" * 60)
    for status, count in result.status_counts.items():
        print(f"{status:<10} {count}")
    print("-" * 60)
    print(f"Results written to {path}")
    if result.has_problems:
        print("⚠️  Some devices failed, see the error column for details")
    print(f"\n[Main] Completed in {result.duration_seconds:.1f} seconds")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="intune-remover",
        description="Remove devices from Intune and Windows Autopilot by serial number",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  intune-remover --connection conn.json --input devices.xlsx --dry-run
  intune-remover --connection conn.json --serial 5CG1234ABC
  intune-remover --connection conn.json --input devices.csv --column Serial
  intune-remover --connection conn.json --check-secret
        """,
    )

    parser.add_argument(
        "--connection",
        metavar="FILE",
        help="JSON file with tenant, clientId and clientSecret (default: AZURE_* env vars)",
    )

    # Serial selection
    input_group = parser.add_argument_group("Serial Numbers")
    input_group.add_argument(
        "--input",
        metavar="FILE",
        help="CSV or XLSX file listing serial numbers",
    )
    input_group.add_argument(
        "--column",
        default=DEFAULT_SERIAL_COLUMN,
        metavar="NAME",
        help=f"Column holding serial numbers (default: {DEFAULT_SERIAL_COLUMN!r})",
    )
    input_group.add_argument(
        "--serial",
        action="append",
        metavar="SERIAL",
        help="Serial number to remove (repeatable)",
    )

    # Run options
    run_group = parser.add_argument_group("Run Options")
    run_group.add_argument(
        "--dry-run", "--dry",
        dest="dry_run",
        action="store_true",
        help="Look devices up without deleting anything",
    )
    run_group.add_argument(
        "--concurrency",
        type=int,
        metavar="N",
        help="Serials processed at once (default: REMOVER_MAX_CONCURRENCY or 5)",
    )
    run_group.add_argument(
        "--output",
        metavar="DIR",
        help="Directory for the results file (default: REMOVER_OUTPUT_DIR or .)",
    )
    run_group.add_argument(
        "--check-secret",
        action="store_true",
        help="Only report how many days the app secret has left",
    )
    run_group.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    connection = load_connection(args)

    if args.check_secret:
        return await check_secret(connection, settings)

    serials = load_serials(args)
    return await run_removal(serials, connection, settings, args.dry_run)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.check_secret and not args.input and not args.serial:
        parser.error("one of --input, --serial or --check-secret is required")
    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")

    try:
        settings = Settings()
    except RemoverError as e:
        print(f"[Main] Configuration error: {e}")
        return 1

    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if args.concurrency is not None:
        settings.max_concurrency = args.concurrency
    if args.output:
        settings.output_dir = Path(args.output)

    logger.debug(f"Running with {settings!r}")

    try:
        return asyncio.run(run(args, settings))
    except RemoverError as e:
        logger.debug(f"Aborted: {e.to_dict()}")
        print(f"[Main] {type(e).__name__}: {e.message}")
        return 1
    except KeyboardInterrupt:
        print("\n[Main] Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
