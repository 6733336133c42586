"""
Notification Channels - Stock sinks that receive fired alerts.

A sink is any callable taking (event, descriptor). Supported here:
- Console (always available)
- Log (INFO line on the "alerts" logger)
- External command (e.g. notify-send, terminal-notifier)

Configuration:
    EVENTWATCH_ALERT_COMMAND - Command run for every alert; the formatted
                               message is appended as the last argument
"""

import logging
import os
import shlex
import subprocess
from datetime import datetime
from typing import Callable, List, Optional

from eventwatch.models import AlertDescriptor, Event

logger = logging.getLogger("notify_channels")

AlertSink = Callable[[Event, AlertDescriptor], None]

ALERT_COMMAND = os.getenv("EVENTWATCH_ALERT_COMMAND", "")
COMMAND_TIMEOUT = 10


def format_alert(event: Event, descriptor: AlertDescriptor) -> str:
    """Human readable alert text."""
    time_str = event.start.strftime("%I:%M %p")
    message = f"{descriptor.title}: {event.title} at {time_str}"
    if event.location:
        message += f"\nLocation: {event.location}"
    if event.url:
        message += f"\nLink: {event.url}"
    return message


def send_console(event: Event, descriptor: AlertDescriptor):
    """Print the alert to the console."""
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] ALERT: {format_alert(event, descriptor)}")


class LogSink:
    """Writes every alert to the log."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logging.getLogger("alerts")

    def __call__(self, event: Event, descriptor: AlertDescriptor):
        self.log.info(
            f"{descriptor.kind} for {event.id!r} ({event.title}) "
            f"sound={descriptor.sound or '-'} duration={descriptor.sound_duration}"
        )


class CommandSink:
    """Runs an external command for each alert.

    The alert message is appended to the command as its last argument.
    Failures are logged; a broken notifier must not stop later alerts.
    """

    def __init__(self, command: str, timeout: int = COMMAND_TIMEOUT):
        self.command = shlex.split(command)
        self.timeout = timeout

    def __call__(self, event: Event, descriptor: AlertDescriptor):
        if not self.command:
            return
        cmd = self.command + [format_alert(event, descriptor)]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
            if result.returncode != 0:
                logger.error(f"Alert command exited {result.returncode}: {result.stderr.strip()[:200]}")
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Alert command failed: {e}")


class MultiSink:
    """Fans each alert out to several sinks, in order."""

    def __init__(self, *sinks: AlertSink):
        self.sinks: List[AlertSink] = list(sinks)

    def add(self, sink: AlertSink):
        self.sinks.append(sink)

    def __call__(self, event: Event, descriptor: AlertDescriptor):
        for sink in self.sinks:
            sink(event, descriptor)


def default_sink(command: Optional[str] = None) -> MultiSink:
    """Console + log, plus the configured alert command if any."""
    sink = MultiSink(send_console, LogSink())
    command = ALERT_COMMAND if command is None else command
    if command:
        sink.add(CommandSink(command))
    return sink
