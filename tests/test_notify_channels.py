"""Unit tests for the stock notification sinks."""
import logging
import subprocess
from unittest.mock import MagicMock, patch

from conftest import make_event
from eventwatch.models import AlertDescriptor, AlertKind
from eventwatch.notify_channels import CommandSink, LogSink, MultiSink, default_sink, format_alert, send_console


def _descriptor(minutes=5):
    return AlertDescriptor(kind=AlertKind.warning(minutes), sound="fire-alarm-bell", sound_duration=4.0)


class TestFormatAlert:
    def test_includes_title_time_and_location(self):
        event = make_event(title="Standup")

        message = format_alert(event, _descriptor())

        assert message.startswith("Starts in 5 minutes: Standup at 09:04 AM")
        assert "Location: Room 4" in message

    def test_includes_link(self):
        event = make_event()
        event.url = "https://meet.example.com/abc"
        event.location = ""

        message = format_alert(event, AlertDescriptor(kind=AlertKind.event_starting()))

        assert message.startswith("Starting now: ")
        assert "Location" not in message
        assert "Link: https://meet.example.com/abc" in message


class TestSinks:
    def test_console(self, capsys):
        send_console(make_event(), _descriptor())

        assert "ALERT: Starts in 5 minutes: Standup" in capsys.readouterr().out

    def test_log_sink(self, caplog):
        with caplog.at_level(logging.INFO, logger="alerts"):
            LogSink()(make_event(), _descriptor())

        assert "warning(5) for 'evt-1'" in caplog.text

    @patch("eventwatch.notify_channels.subprocess.run")
    def test_command_sink_appends_message(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stderr="")

        CommandSink("notify-send -u critical")(make_event(), _descriptor())

        cmd = mock_run.call_args[0][0]
        assert cmd[:3] == ["notify-send", "-u", "critical"]
        assert cmd[3].startswith("Starts in 5 minutes: Standup")

    @patch("eventwatch.notify_channels.subprocess.run")
    def test_command_sink_logs_failures(self, mock_run, caplog):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="notify-send", timeout=10)

        with caplog.at_level(logging.ERROR, logger="notify_channels"):
            CommandSink("notify-send")(make_event(), _descriptor())

        assert "Alert command failed" in caplog.text

    @patch("eventwatch.notify_channels.subprocess.run")
    def test_empty_command_does_nothing(self, mock_run):
        CommandSink("")(make_event(), _descriptor())

        mock_run.assert_not_called()

    def test_multi_sink_calls_in_order(self):
        order = []
        sink = MultiSink(lambda e, d: order.append("a"))
        sink.add(lambda e, d: order.append("b"))

        sink(make_event(), _descriptor())

        assert order == ["a", "b"]

    def test_default_sink(self):
        assert len(default_sink(command="").sinks) == 2

        sinks = default_sink(command="say").sinks
        assert isinstance(sinks[-1], CommandSink)
        assert sinks[-1].command == ["say"]
