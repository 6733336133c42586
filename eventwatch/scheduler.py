#!/usr/bin/env python3
"""
Alert Scheduler - Runs the calendar monitor on a fixed cadence.

Runs one scan immediately, then one every POLL_INTERVAL seconds on a
daemon thread, until stopped or the process receives SIGINT/SIGTERM.

Configuration (environment variables):
    EVENTWATCH_LOG_DIR       - Directory for log files (default: ~/.eventwatch/logs)
    EVENTWATCH_CONFIG        - Preferences YAML path
    EVENTWATCH_CALENDARS_DIR - Directory of .ics calendars
    EVENTWATCH_ALERT_COMMAND - Command run for every alert
"""

import argparse
import logging
import os
import signal
import sys
import threading
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from eventwatch import __version__
from eventwatch.calendar_monitor import POLL_INTERVAL, CalendarMonitor
from eventwatch.calendar_source import CalendarSourceError, ICSDirectorySource
from eventwatch.notify_channels import default_sink
from eventwatch.preferences import Preferences

LOG_DIR = Path(os.getenv("EVENTWATCH_LOG_DIR", str(Path.home() / ".eventwatch" / "logs")))
LOG_FILE = LOG_DIR / "eventwatch.log"
MAX_LOG_SIZE = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("scheduler")


def setup_logging(console: bool = False, log_file: Optional[Path] = None):
    """Log to a rotating file, and to stderr when console is set."""
    log_file = log_file or LOG_FILE
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(log_file, maxBytes=MAX_LOG_SIZE, backupCount=LOG_BACKUP_COUNT)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console_handler)


class AlertScheduler:
    """Drives CalendarMonitor.scan() from a repeating timer thread."""

    def __init__(self, monitor: CalendarMonitor, interval: float = POLL_INTERVAL):
        self.monitor = monitor
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def _run_scan(self):
        try:
            self.monitor.scan()
        except Exception as e:
            logger.error(f"Calendar scan error: {type(e).__name__}: {e}")

    def _timer_loop(self, next_run: float):
        """Scan at a fixed rate until stopped.

        Ticks are spaced from the previous tick, not from the end of the
        previous scan. A tick that falls behind is moved up to now; missed
        ticks are not replayed.
        """
        logger.info("Calendar monitor thread started")
        while not self._stop_event.wait(max(0.0, next_run - time.monotonic())):
            self._run_scan()
            next_run += self.interval
            now = time.monotonic()
            if next_run < now:
                logger.warning(f"Calendar scan fell behind by {now - next_run:.1f}s")
                next_run = now
        logger.info("Calendar monitor thread stopped")

    def start_monitoring(self):
        """Scan once now, then every interval on a background thread."""
        with self._state_lock:
            if self.running:
                logger.debug("Monitoring already running")
                return
            self._stop_event = threading.Event()

        logger.info(f"Starting calendar monitoring: scan every {self.interval}s")
        next_run = time.monotonic() + self.interval
        self._run_scan()

        with self._state_lock:
            if self._stop_event.is_set():
                return
            self._thread = threading.Thread(target=self._timer_loop, args=(next_run,), name="calendar", daemon=True)
            self._thread.start()

    def stop_monitoring(self, timeout: Optional[float] = 5.0):
        """Cancel the timer. Safe to call when already stopped."""
        with self._state_lock:
            thread = self._thread
            self._stop_event.set()
            self._thread = None

        if thread is None:
            return
        logger.info("Stopping calendar monitoring")
        if thread is not threading.current_thread():
            thread.join(timeout)

    def run_forever(self):
        """Monitor until SIGINT/SIGTERM."""
        finished = threading.Event()

        def handle_signal(signum, frame):
            logger.info(f"Received signal {signum}")
            finished.set()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        self.start_monitoring()
        try:
            while not finished.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
        finally:
            self.stop_monitoring()
            logger.info("Scheduler stopped.")


def build_monitor(calendars_dir: Optional[Path] = None, config_file: Optional[Path] = None) -> CalendarMonitor:
    """Wire the stock source, preferences and sink together."""
    source = ICSDirectorySource(calendars_dir)
    preferences = Preferences(config_file)
    return CalendarMonitor(source, preferences, default_sink())


def main(argv=None) -> int:
    """Entry point with CLI flags."""
    parser = argparse.ArgumentParser(prog="eventwatch", description="Calendar event alerts")
    parser.add_argument("--calendars-dir", type=Path, help="Directory of .ics calendar files")
    parser.add_argument("--config", type=Path, help="Preferences YAML file")
    parser.add_argument("--once", action="store_true", help="Run one scan and exit")
    parser.add_argument("--list-calendars", action="store_true", help="List calendars and exit")
    parser.add_argument("--console", action="store_true", help="Also log to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    setup_logging(console=args.console)
    monitor = build_monitor(args.calendars_dir, args.config)

    if args.list_calendars:
        try:
            calendar_ids = sorted(monitor.source.calendar_ids())
        except CalendarSourceError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        for calendar_id in calendar_ids:
            state = "enabled" if monitor.preferences.is_calendar_enabled(calendar_id) else "disabled"
            print(f"  {calendar_id:<30} {state}")
        return 0

    if args.once:
        fired = monitor.scan()
        print(f"Scan complete: {len(fired)} alert(s) fired.")
        return 0

    logger.info("=" * 60)
    logger.info(f"EVENTWATCH {__version__} STARTING")
    logger.info(f"Calendars: {monitor.source.directory}")
    logger.info(f"Preferences: {monitor.preferences.config_file}")
    logger.info(f"Log file: {LOG_FILE}")
    logger.info("=" * 60)

    AlertScheduler(monitor).run_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
