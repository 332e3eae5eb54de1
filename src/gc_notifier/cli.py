"""
Command Line Interface for pygcnotifier
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

import argparse

from .maxheap import DEFAULT_INTERVAL, UNLIMITED, parse_limits


def parse_max_heap(value):
    """argparse type for LOW:HIGH heap limits; rejects what PYMAXHEAP would ignore."""
    low, high = parse_limits(value)
    if low == UNLIMITED and high == UNLIMITED:
        raise argparse.ArgumentTypeError(f"invalid heap limits: {value!r} (expected LOW:HIGH in bytes)")
    if low > high:
        raise argparse.ArgumentTypeError(f"invalid heap limits: {value!r} (low exceeds high)")
    return value.strip()


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description='Get notified after every Python garbage collection cycle.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  pygcnotifier watch
  pygcnotifier watch --duration 30 --alloc-kb 4096 --json
  pygcnotifier watch --max-heap 100000000:500000000
  pygcnotifier run --max-heap 200000000 my_script.py
  pygcnotifier run -- -m http.server 8000
        '''
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    watch_parser = subparsers.add_parser('watch', help='Churn memory and log every GC notification')
    watch_parser.add_argument('--duration', type=float, default=10.0,
                              help='How long to run in seconds (default: 10.0)')
    watch_parser.add_argument('--alloc-kb', type=int, default=1024,
                              help='Kilobytes of garbage allocated per iteration (default: 1024)')
    watch_parser.add_argument('--pause-ms', type=float, default=10.0,
                              help='Pause between iterations in ms, so notifications are not coalesced (default: 10)')
    watch_parser.add_argument('--json', action='store_true',
                              help='Output in JSON format instead of human-readable')
    watch_parser.add_argument('--log-file', help='Log output to file')
    watch_parser.add_argument('--max-heap', type=parse_max_heap,
                              help='Run the heap supervisor with LOW:HIGH byte limits')
    watch_parser.add_argument('--verbose', action='store_true',
                              help='Show library debug logging')

    run_parser = subparsers.add_parser('run', help='Run a Python script with the heap supervisor')
    run_parser.add_argument('script', help='Python script to run')
    run_parser.add_argument('script_args', nargs=argparse.REMAINDER,
                            help='Arguments to pass to the script')
    run_parser.add_argument('--max-heap', type=parse_max_heap,
                            help='LOW:HIGH byte limits (default: $PYMAXHEAP)')
    run_parser.add_argument('--interval', type=float, default=DEFAULT_INTERVAL,
                            help=f'Supervisor polling interval in seconds (default: {DEFAULT_INTERVAL})')
    run_parser.add_argument('--verbose', action='store_true',
                            help='Show supervisor logging in the child process')

    return parser.parse_args()
