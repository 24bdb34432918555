"""
Connection Health - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for the connectivity monitor.

- argparse-based CLI (long-standing flag names kept)
- Loads configuration from YAML / environment / .env
- Command-line flags override file and environment values
- Event lines go to stdout, diagnostic logging to stderr

============================================================
USAGE
============================================================
connection-health --host 10.0.0.5 --port 4000 --conns 100
connection-health --url "mysql+aiomysql://root:pw@db:3306/test"
connection-health --config monitor.yaml --exercise-transaction
connection-health --dry-run --conns 4 --interval 200

============================================================
"""

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional
import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from .client import ProbeClient
from .config import MonitorConfig
from .exceptions import ConfigurationError
from .mock import MockConfig, MockProbeClient
from .monitor import Monitor
from .sqlalchemy_client import SqlAlchemyProbeClient


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Set up diagnostic logging on stderr.

    stdout is reserved for the event stream.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("connection_health")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="connection-health",
        description="Continuously probe a database endpoint's connectivity path",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Output (stdout), one line per event:
  HH:MM:SS long refused 3 success 97       per-second group summary
  HH:MM:SS short slow operation 152ms ...  individual slow operation
  HH:MM:SS short uncategorized error: ...  unknown failure mode

Flags left unset fall back to --config, then CONNMON_* variables.
        """
    )

    # --------------------------------------------------------
    # Target
    # --------------------------------------------------------
    target_group = parser.add_argument_group("Target")

    target_group.add_argument("--host", type=str, help="database host (default: 127.0.0.1)")
    target_group.add_argument("--port", type=int, help="database port (default: 4000)")
    target_group.add_argument("--user", type=str, help="database user (default: root)")
    target_group.add_argument("--password", type=str, help="database password")
    target_group.add_argument("--database", type=str, help="database name (default: test)")
    target_group.add_argument(
        "--url",
        type=str,
        help="full async SQLAlchemy URL, overrides host/port/user/password",
    )

    # --------------------------------------------------------
    # Probes
    # --------------------------------------------------------
    probe_group = parser.add_argument_group("Probes")

    probe_group.add_argument(
        "--conns",
        type=int,
        help="number of long-lived connections (default: 100)",
    )
    probe_group.add_argument(
        "--concurrency",
        type=int,
        help="number of short-lived probes (default: 1)",
    )
    probe_group.add_argument(
        "--interval",
        type=int,
        metavar="MS",
        help="short-lived probe interval in ms (default: 1000)",
    )
    probe_group.add_argument(
        "--long-interval",
        type=int,
        metavar="MS",
        help="long-lived probe interval in ms (default: 1000)",
    )
    probe_group.add_argument(
        "--sentinel-interval",
        type=int,
        metavar="MS",
        help="sentinel probe interval in ms, 0 disables (default: 1000)",
    )
    probe_group.add_argument(
        "--slow",
        type=int,
        metavar="MS",
        help="slow operation threshold in ms (default: 100)",
    )
    probe_group.add_argument(
        "--exercise-transaction",
        action="store_true",
        help="also run a read transaction after every successful ping",
    )

    # --------------------------------------------------------
    # Runtime
    # --------------------------------------------------------
    runtime_group = parser.add_argument_group("Runtime")

    runtime_group.add_argument("--config", type=Path, help="YAML configuration file")
    runtime_group.add_argument(
        "--dry-run",
        action="store_true",
        help="probe an in-memory mock database instead of a real one",
    )
    runtime_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="diagnostic log level on stderr (default: WARNING)",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    for name in ("interval", "long_interval", "slow"):
        value = getattr(args, name)
        if value is not None and value <= 0:
            errors.append(f"--{name.replace('_', '-')} must be positive")

    if args.sentinel_interval is not None and args.sentinel_interval < 0:
        errors.append("--sentinel-interval must be >= 0")

    for name in ("conns", "concurrency"):
        value = getattr(args, name)
        if value is not None and value < 0:
            errors.append(f"--{name} must be >= 0")

    if args.config is not None and not args.config.exists():
        errors.append(f"--config file not found: {args.config}")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def _millis(value: Optional[int]) -> Optional[float]:
    return None if value is None else value / 1000.0


def _present(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def build_config(args: argparse.Namespace) -> MonitorConfig:
    """
    Build the monitor configuration.

    Raises:
        ConfigurationError: Invalid resulting configuration
    """
    if args.config is not None:
        config = MonitorConfig.from_yaml(args.config)
    else:
        config = MonitorConfig.from_env()

    database = replace(config.database, **_present({
        "url": args.url,
        "host": args.host,
        "port": args.port,
        "user": args.user,
        "password": args.password,
        "database": args.database,
    }))

    probes = replace(config.probes, **_present({
        "long_conns": args.conns,
        "short_concurrency": args.concurrency,
        "short_interval": _millis(args.interval),
        "long_interval": _millis(args.long_interval),
        "sentinel_interval": _millis(args.sentinel_interval),
        "slow_threshold": _millis(args.slow),
        "exercise_transaction": True if args.exercise_transaction else None,
    }))

    return MonitorConfig(database=database, probes=probes)


def build_client(config: MonitorConfig, dry_run: bool = False) -> ProbeClient:
    """Real SQLAlchemy client, or the mock client for dry runs."""
    if dry_run:
        return MockProbeClient(MockConfig(ping_latency=0.002, transaction_latency=0.005))
    return SqlAlchemyProbeClient(config.database)


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(config: MonitorConfig, client: ProbeClient) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    monitor = Monitor(config, client)
    try:
        await monitor.run_forever()
        return 0
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await monitor.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    logger = setup_logging(args.log_level)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    client = build_client(config, dry_run=args.dry_run)
    print_banner(config, client)
    logger.info(f"Configuration: {config.to_dict()}")

    try:
        return asyncio.run(async_main(config, client))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


def print_banner(config: MonitorConfig, client: ProbeClient) -> None:
    """Print startup banner to stderr."""
    probes = config.probes
    out = sys.stderr
    print("=" * 60, file=out)
    print("  CONNECTION HEALTH MONITOR", file=out)
    print("=" * 60, file=out)
    print(f"  Target:      {client.target}", file=out)
    print(f"  Long:        {probes.long_conns} conns every {probes.long_interval}s", file=out)
    print(f"  Short:       {probes.short_concurrency} probes every {probes.short_interval}s", file=out)
    sentinel = f"every {probes.sentinel_interval}s" if probes.sentinel_enabled else "disabled"
    print(f"  Sentinel:    {sentinel}", file=out)
    print(f"  Slow:        {probes.slow_threshold * 1000:.0f}ms", file=out)
    print(f"  Transaction: {probes.exercise_transaction}", file=out)
    print("=" * 60, file=out)


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
