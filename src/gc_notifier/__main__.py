"""
Main entry point for pygcnotifier CLI
Copyright (C) 2024  Akshat Kotpalliwar

This library is free software; you can redistribute it and/or
modify it under the terms of the GNU Lesser General Public
License as published by the Free Software Foundation; either
version 2.1 of the License, or (at your option) any later version.

This library is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public
License along with this library; if not, see <https://www.gnu.org/licenses/>.
"""

import os
import shlex
import signal
import subprocess
import sys

from . import maxheap
from .cli import parse_arguments
from .codegen import generate_supervisor_code
from .logging import NotifierLogger
from .watch import NotificationWatcher, churn_memory


def _watch(args):
    logger = NotifierLogger(json_output=args.json, log_file=args.log_file, verbose=args.verbose)
    supervisor = None
    if args.max_heap:
        low, high = maxheap.parse_limits(args.max_heap)
        supervisor = maxheap.HeapSupervisor(low=low, high=high).start()

    if not args.json:
        logger._log_message(f"GMEM Watching GC notifications for {args.duration:.1f}s")
    watcher = NotificationWatcher(logger=logger).start()
    try:
        churn_memory(args.duration, args.alloc_kb, args.pause_ms)
    except KeyboardInterrupt:
        logger._log_message("\nGMEM Watch interrupted by user")
    finally:
        summary = watcher.stop()
        if supervisor is not None:
            supervisor.stop()
            summary['forced_collections'] = supervisor.collections
        logger.log_summary(summary)
        logger.close()


def _run(args):
    is_module = args.script == '-m'

    if not is_module and not os.path.exists(args.script):
        print(f"Error: Script file not found: {args.script}", file=sys.stderr)
        print("", file=sys.stderr)
        print("Troubleshooting:", file=sys.stderr)
        print("  - Check the file path is correct", file=sys.stderr)
        print("  - Use absolute path: pygcnotifier run /full/path/to/script.py", file=sys.stderr)
        print("  - For modules, use: pygcnotifier run -- -m module_name", file=sys.stderr)
        sys.exit(1)

    supervisor_code = generate_supervisor_code(interval=args.interval, verbose=args.verbose)

    cmd = [
        sys.executable,
        '-c',
        supervisor_code,
        args.script
    ] + args.script_args

    env = dict(os.environ)
    if args.max_heap:
        env[maxheap.ENV_VAR] = args.max_heap

    print(f"GMEM Running: {' '.join(shlex.quote(arg) for arg in [cmd[0], cmd[3]] + cmd[4:])}",
          file=sys.stderr)

    process = None

    def signal_handler(signum, frame):
        """Forward signals to the subprocess for graceful shutdown."""
        if process is not None:
            try:
                process.send_signal(signum)
            except (ProcessLookupError, OSError):
                pass  # Process already terminated

    original_sigint = signal.signal(signal.SIGINT, signal_handler)
    original_sigterm = signal.signal(signal.SIGTERM, signal_handler)

    try:
        process = subprocess.Popen(cmd, env=env)
        returncode = process.wait()
        sys.exit(returncode)
    except KeyboardInterrupt:
        print("\nGMEM Run interrupted by user", file=sys.stderr)
        if process is not None:
            try:
                process.terminate()
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
            except (ProcessLookupError, OSError):
                pass
        sys.exit(130)  # Standard exit code for SIGINT
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)


def main():
    """Main entry point for pygcnotifier CLI."""
    args = parse_arguments()

    if not args.command:
        print("Error: No command specified. Use 'watch' or 'run'", file=sys.stderr)
        print("Usage: pygcnotifier watch [options]", file=sys.stderr)
        print("       pygcnotifier run <script.py> [args...]", file=sys.stderr)
        print("       pygcnotifier run -- -m <module> [args...]", file=sys.stderr)
        sys.exit(1)

    if args.command == 'watch':
        _watch(args)
    elif args.command == 'run':
        _run(args)


if __name__ == "__main__":
    main()
