#!/usr/bin/env python3
"""
CLI entry point for labbench.

Usage:
    python -m labbench echo-server --port 1144
    python -m labbench benchmark --files $DATA/movie.mkv --ip 192.168.1.20
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from labbench.config import (
    DEFAULT_HOST,
    DEFAULT_REPEATS,
    DEFAULT_TIMEOUT_S,
    DEFAULT_TRANSCODE_SECONDS,
    FALLBACK_PORT,
    LOOPBACK_HOST,
    get_default_port,
)
from labbench.echo_server import run_echo_server
from labbench.errors import BenchmarkError, ConfigurationError
from labbench.report import ReportGenerator
from labbench.operations import DEFAULT_OPERATIONS, Operation
from labbench.session import BenchmarkConfig, BenchmarkSession
from labbench.transcoder import FfmpegTranscoder


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the run. Logs go to stderr."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def create_progress_callback(console: Console):
    """Create a progress callback rendering a rich progress bar."""
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    )

    task_id = None
    started = False

    def callback(current: int, total: int, message: str) -> None:
        nonlocal task_id, started

        if not started:
            progress.start()
            task_id = progress.add_task(message, total=total)
            started = True
        progress.update(task_id, completed=current, description=message)

        if current >= total:
            progress.stop()

    return callback, lambda: progress.stop() if started else None


def operation_list(value: str) -> list[str]:
    """Parse a comma separated list of operation names."""
    return [part.strip() for part in value.split(",") if part.strip()]


PORT_HELP = f"(default: $LABBENCH_PORT or {FALLBACK_PORT})"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labbench",
        description="Compare file read, transcode and LAN transfer speed across machines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # On the machine every candidate transfers to
    labbench echo-server

    # On each candidate machine
    labbench benchmark --files $DATA/movie.mkv --ip 192.168.1.20

    # LAN and loopback transfer in one table (echo server also running locally)
    labbench benchmark --files $DATA/movie.mkv --ip 192.168.1.20 --local-port 1144

    # Only local read and transcode, 10 trials each
    labbench benchmark --files $DATA/movie.mkv --operations read,transcode --repeats 10
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("echo-server", help="Receive and discard transfer data")
    server.add_argument("--host", default=DEFAULT_HOST, help=f"Address to bind (default: {DEFAULT_HOST})")
    server.add_argument("--port", type=int, default=None, help=f"Port to listen on {PORT_HELP}")
    server.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    bench = subparsers.add_parser("benchmark", help="Time read, transcode and transfer of files")
    bench.add_argument(
        "--files",
        action="append",
        required=True,
        metavar="PATH",
        help="File to benchmark; repeat for several files",
    )
    bench.add_argument("--ip", default=None, help="Echo server address (required for transfer)")
    bench.add_argument("--port", type=int, default=None, help=f"Echo server port {PORT_HELP}")
    bench.add_argument(
        "--local-port",
        type=int,
        default=None,
        help="Port of an echo server on this machine; adds the local-transfer operation",
    )
    bench.add_argument(
        "--repeats",
        type=int,
        default=DEFAULT_REPEATS,
        help=f"Trials per operation and file, at least 2 (default: {DEFAULT_REPEATS})",
    )
    bench.add_argument(
        "--operations",
        type=operation_list,
        default=None,
        help=(
            "Comma separated subset of read,transcode,transfer,local-transfer "
            "(default: read,transcode,transfer, plus local-transfer with --local-port)"
        ),
    )
    bench.add_argument("--warmup", type=int, default=0, help="Untimed runs before each operation's trials (default: 0)")
    bench.add_argument(
        "--transcode-seconds",
        type=float,
        default=DEFAULT_TRANSCODE_SECONDS,
        help=f"Length of input to transcode (default: {DEFAULT_TRANSCODE_SECONDS:g})",
    )
    bench.add_argument("--ffmpeg", default=None, help="ffmpeg executable (default: $LABBENCH_FFMPEG or ffmpeg)")
    bench.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_S,
        help=f"Socket timeout for transfers in seconds (default: {DEFAULT_TIMEOUT_S:g})",
    )
    bench.add_argument(
        "--keep-going",
        action="store_true",
        help="Report a failing operation as missing and continue instead of aborting",
    )
    bench.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    return parser


def echo_server_command(args: argparse.Namespace) -> int:
    try:
        port = args.port if args.port is not None else get_default_port()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        run_echo_server(args.host, port)
    except KeyboardInterrupt:
        print("\nEcho server interrupted", file=sys.stderr)
        return 130
    except OSError as e:
        logging.error(f"Echo server failed: {e}")
        print(f"Error: cannot serve on {args.host}:{port}: {e}", file=sys.stderr)
        return 1
    return 0


def benchmark_command(args: argparse.Namespace) -> int:
    options = dict(
        files=args.files,
        ip=args.ip,
        local_port=args.local_port,
        repeats=args.repeats,
        warmup=args.warmup,
        transcode_seconds=args.transcode_seconds,
        timeout=args.timeout,
        keep_going=args.keep_going,
    )
    if args.operations is not None:
        options["operations"] = args.operations
    elif args.local_port is not None:
        operations = [op for op in DEFAULT_OPERATIONS if op is not Operation.TRANSFER or args.ip is not None]
        options["operations"] = operations + [Operation.LOCAL_TRANSFER]

    try:
        # an unset --port falls back to $LABBENCH_PORT, which may itself be invalid
        options["port"] = args.port if args.port is not None else get_default_port()
        config = BenchmarkConfig.from_options(**options)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    err_console = Console(stderr=True)
    err_console.rule("labbench")
    err_console.print(f"  Files:       {', '.join(str(f) for f in config.files)}", markup=False)
    err_console.print(f"  Operations:  {', '.join(op.value for op in config.operations)}")
    err_console.print(f"  Repeats:     {config.repeats}")
    err_console.print(f"  Warmup runs: {config.warmup}")
    if config.ip is not None:
        err_console.print(f"  Echo server: {config.ip}:{config.port}")
    if config.local_port is not None:
        err_console.print(f"  Local echo:  {LOOPBACK_HOST}:{config.local_port}")
    err_console.rule()

    transcoder = FfmpegTranscoder(seconds=config.transcode_seconds, binary=args.ffmpeg or "")
    progress_callback, cleanup = create_progress_callback(err_console)

    try:
        session = BenchmarkSession(config, transcoder=transcoder, progress_callback=progress_callback)
        result = session.run()
        cleanup()
    except KeyboardInterrupt:
        cleanup()
        print("\nBenchmark interrupted by user", file=sys.stderr)
        return 130
    except BenchmarkError as e:
        cleanup()
        logging.error(f"Benchmark aborted: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        cleanup()
        logging.exception("Benchmark failed with error")
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    ReportGenerator(result, Console()).print_report()
    return 0 if result.ok else 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the labbench CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "echo-server":
        return echo_server_command(args)
    return benchmark_command(args)


if __name__ == "__main__":
    sys.exit(main())
