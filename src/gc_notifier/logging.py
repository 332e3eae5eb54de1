"""
Logging utilities for pygcnotifier
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

import json
import logging
import sys
from datetime import datetime


class NotifierLogger:
    """GMEM-prefixed output to stderr and, optionally, a log file."""

    def __init__(self, json_output=False, log_file=None, verbose=False):
        self.json_output = json_output
        self.log_file = log_file
        self.log_handle = open(log_file, 'a', encoding='utf-8') if log_file else None
        if verbose:
            self._configure_library_logging()

    def _configure_library_logging(self):
        """Route the library's logging records through this logger."""
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("GMEM %(levelname)s | %(name)s | %(message)s"))
        library_logger = logging.getLogger("gc_notifier")
        library_logger.addHandler(handler)
        library_logger.setLevel(logging.DEBUG)

    def _log_message(self, message):
        print(message, file=sys.stderr)
        if self.log_handle:
            self.log_handle.write(message + '\n')
            self.log_handle.flush()

    def _format_duration(self, duration_ms):
        if duration_ms < 1:
            return f"{duration_ms * 1000:.0f}us"
        if duration_ms < 1000:
            return f"{duration_ms:.2f}ms"
        return f"{duration_ms / 1000:.2f}s"

    def _format_bytes(self, size):
        if size < 1024:
            return f"{size}B"
        for unit in ('KiB', 'MiB', 'GiB'):
            size /= 1024
            if size < 1024 or unit == 'GiB':
                return f"{size:.1f}{unit}"

    def log_notification(self, event):
        """Log one received GC notification."""
        if self.json_output:
            self._log_message(json.dumps(event))
            return
        when = datetime.fromtimestamp(event['timestamp']).strftime('%H:%M:%S.%f')[:-3]
        self._log_message(
            f"GMEM {when} | notification {event['notifications']} | "
            f"collections {event['collections']} | "
            f"waited {self._format_duration(event['waited_ms'])} | "
            f"rss {self._format_bytes(event['rss'])}"
        )

    def log_alert(self, message):
        self._log_message(message)

    def log_summary(self, summary):
        if self.json_output:
            self._log_message(json.dumps(summary))
            return
        self._log_message("\n=== GC NOTIFICATION SUMMARY ===")
        self._log_message(f"Notifications received: {summary['notifications']}")
        self._log_message(f"Collections observed: {summary['collections']}")
        self._log_message(f"Coalesced collections: {summary['coalesced']}")
        if summary.get('forced_collections'):
            self._log_message(f"Forced by heap supervisor: {summary['forced_collections']}")

    def close(self):
        if self.log_handle:
            self.log_handle.close()
            self.log_handle = None
