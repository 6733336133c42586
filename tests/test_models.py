"""Unit tests for the alert data models."""
import pytest

from eventwatch.models import AlertDescriptor, AlertKind, AlertType, AlertWarning, default_warnings


class TestAlertKind:
    """Equality and hashing of alert kinds."""

    def test_warning_equality(self):
        """Warnings with the same offset are equal."""
        assert AlertKind.warning(5) == AlertKind.warning(5)
        assert AlertKind.warning(5) != AlertKind.warning(10)

    def test_zero_minute_warning_is_not_event_starting(self):
        """A 0 minute warning and the start alert are distinct kinds."""
        assert AlertKind.warning(0) != AlertKind.event_starting()

    def test_kinds_are_hashable(self):
        """Kinds can be stored in sets and used as dict keys."""
        kinds = {
            AlertKind.warning(5),
            AlertKind.warning(5),
            AlertKind.warning(1),
            AlertKind.event_starting(),
        }
        assert len(kinds) == 3

        labels = {AlertKind.warning(5): "first", AlertKind.event_starting(): "start"}
        assert labels[AlertKind.warning(5)] == "first"
        assert labels[AlertKind.event_starting()] == "start"

    def test_warning_from_config(self):
        """A configured warning maps onto a warning kind by its offset."""
        warning = AlertWarning(minutes_before=5)
        kind = AlertKind.warning(warning.minutes_before)

        assert kind.type is AlertType.WARNING
        assert kind.minutes == 5
        assert str(kind) == "warning(5)"
        assert str(AlertKind.event_starting()) == "event_starting"


class TestAlertWarning:
    """Warning config parsing."""

    def test_defaults_are_descending(self):
        """Default warnings are 5 then 1 minute with the alarm bell."""
        warnings = default_warnings()

        assert [w.minutes_before for w in warnings] == [5, 1]
        assert all(w.sound == "fire-alarm-bell" for w in warnings)
        assert all(w.sound_duration == 4.0 for w in warnings)

    def test_from_dict(self):
        warning = AlertWarning.from_dict({"minutes_before": 10, "sound": "", "sound_duration": 0})

        assert warning == AlertWarning(minutes_before=10, sound="", sound_duration=0.0)

    def test_dict_round_trip(self):
        warning = AlertWarning(minutes_before=15, sound="mixkit-alarm-tone", sound_duration=2.5)

        assert AlertWarning.from_dict(warning.to_dict()) == warning

    @pytest.mark.parametrize("data", [
        {"minutes_before": 0},
        {"minutes_before": -5},
        {"minutes_before": "5"},
        {"minutes_before": True},
        {"sound": "fire-alarm-bell"},
        ["minutes_before", 5],
    ])
    def test_from_dict_rejects_bad_input(self, data):
        """Offsets must be positive integers."""
        with pytest.raises(ValueError):
            AlertWarning.from_dict(data)


class TestAlertDescriptor:
    """Descriptor convenience properties."""

    def test_titles(self):
        assert AlertDescriptor(AlertKind.warning(5)).title == "Starts in 5 minutes"
        assert AlertDescriptor(AlertKind.warning(1)).title == "Starts in 1 minute"
        assert AlertDescriptor(AlertKind.event_starting()).title == "Starting now"

    def test_minutes_before(self):
        assert AlertDescriptor(AlertKind.warning(15)).minutes_before == 15
        assert AlertDescriptor(AlertKind.event_starting()).minutes_before == 0
