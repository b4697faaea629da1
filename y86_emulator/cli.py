#!/usr/bin/env python3
"""
y86emu - Y86-64 text instruction emulator CLI

Usage:
    y86emu serve  [--host 127.0.0.1] [--port 8080] [--profile default]
                  [--mem-size N] [--start-addr A] [--verbose]
    y86emu client [--host 127.0.0.1] [--port 8080]
    y86emu repl   [--profile default] [--mem-size N] [--start-addr A] [--trace] [--hexdump]

Examples:
    y86emu serve --port 9000 --profile stack -v
    y86emu client --port 9000
    echo "irmovq 5, r1" | y86emu repl
"""

import argparse
import logging
import sys

from . import __version__
from .config import (
    ConfigError, ServerConfig, MACHINE_PROFILES, DEFAULT_HOST, DEFAULT_PORT,
    DEFAULT_BACKLOG, machine_profile, parse_int_arg,
)
from .log_setup import setup_logging
from .net.client import interactive_mode
from .net.server import run_server
from .session import Session

log = logging.getLogger("y86_emulator.cli")


def _add_machine_args(p: argparse.ArgumentParser):
    p.add_argument("--profile", default="default", choices=list(MACHINE_PROFILES),
                   help="Machine memory layout (default: default)")
    p.add_argument("--mem-size", type=parse_int_arg, default=None,
                   help="Memory capacity in bytes (hex or decimal)")
    p.add_argument("--start-addr", type=parse_int_arg, default=None,
                   help="First valid address of the memory window")
    p.add_argument("--stack", type=parse_int_arg, default=None,
                   help="Initial value of r4 (stack pointer)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="y86emu",
        description="Y86-64 text instruction emulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Profiles: " + ", ".join(MACHINE_PROFILES),
    )
    parser.add_argument("--version", action="version", version=f"y86emu {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose debug logging")
    parser.add_argument("--no-log-file", action="store_true",
                        help="Do not write a log file under ./logs")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the TCP session server")
    serve.add_argument("--host", default=DEFAULT_HOST,
                       help=f"Bind address (default: {DEFAULT_HOST})")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT,
                       help=f"TCP port (default: {DEFAULT_PORT})")
    serve.add_argument("--backlog", type=int, default=DEFAULT_BACKLOG,
                       help=f"Listen backlog (default: {DEFAULT_BACKLOG})")
    _add_machine_args(serve)

    client = sub.add_parser("client", help="Interactive client for a running server")
    client.add_argument("--host", default=DEFAULT_HOST)
    client.add_argument("--port", type=int, default=DEFAULT_PORT)

    repl = sub.add_parser("repl", help="Run one local session on stdin/stdout")
    repl.add_argument("--trace", action="store_true",
                      help="Print an execution trace to stderr at exit")
    repl.add_argument("--hexdump", action="store_true",
                      help="Print a hex dump of the memory window to stderr at exit")
    _add_machine_args(repl)

    return parser


def run_repl(session: Session, stream=None, out=None, prompt: bool = True):
    """Feed lines from stream to the session and print each response."""
    stream = stream or sys.stdin
    out = out or sys.stdout
    interactive = prompt and stream.isatty()
    while True:
        if interactive:
            out.write("Y86> ")
            out.flush()
        line = stream.readline()
        if not line:
            break
        if line.strip() in ('quit', 'q'):
            break
        out.write(session.handle(line) + "\n")
        out.flush()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    console_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(console_level=console_level, log_to_file=not args.no_log_file)

    if args.command == "client":
        try:
            interactive_mode(args.host, args.port)
        except OSError as e:
            log.error("Failed to connect to %s:%d: %s", args.host, args.port, e)
            return 1
        return 0

    try:
        machine = machine_profile(args.profile, capacity=args.mem_size,
                                  start_addr=args.start_addr,
                                  stack_pointer=args.stack)
    except ConfigError as e:
        log.error("Invalid machine configuration: %s", e)
        return 2

    if args.command == "serve":
        try:
            run_server(ServerConfig(host=args.host, port=args.port,
                                    backlog=args.backlog), machine)
        except OSError as e:
            log.error("Failed to start server on %s:%d: %s", args.host, args.port, e)
            return 1
        return 0

    session = Session(machine)
    session.cpu.enable_trace(args.trace)
    run_repl(session)
    if args.trace:
        print(session.cpu.get_trace(), file=sys.stderr)
    if args.hexdump:
        mem = session.state.mem
        print(mem.hexdump(length=mem.valid_mem), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
