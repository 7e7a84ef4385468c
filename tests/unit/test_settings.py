import aws_cdk as core
import pytest

from product_fanout.settings import FanoutSettings


def test_defaults():
    settings = FanoutSettings()

    assert settings.consumers == ("marketing", "inventory", "analytics")
    assert settings.batch_size == 5
    assert settings.alarm_period_minutes == 5
    assert settings.error_threshold == 1
    assert settings.alert_email is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"consumers": ()},
        {"consumers": ("marketing", "marketing")},
        {"consumers": ("billing",)},
        {"batch_size": 0},
        {"batch_size": 11},
        {"batch_size": "5"},
        {"batch_size": 2.5},
        {"batch_size": True},
        {"consumers": "marketing"},
        {"alarm_period_minutes": 0},
        {"error_threshold": 0},
    ],
)
def test_invalid_settings(overrides):
    with pytest.raises(ValueError):
        FanoutSettings(**overrides)


@pytest.mark.parametrize("batch_size", [1, 10])
def test_batch_size_bounds_accepted(batch_size):
    assert FanoutSettings(batch_size=batch_size).batch_size == batch_size


def test_from_empty_context():
    app = core.App()

    assert FanoutSettings.from_context(app.node) == FanoutSettings()


def test_from_command_line_context():
    # -c values always arrive as strings
    app = core.App(
        context={
            "consumers": "marketing, analytics",
            "batch_size": "10",
            "error_threshold": "2",
            "alert_email": "oncall@example.com",
        }
    )

    settings = FanoutSettings.from_context(app.node)

    assert settings.consumers == ("marketing", "analytics")
    assert settings.batch_size == 10
    assert settings.error_threshold == 2
    assert settings.alarm_period_minutes == 5
    assert settings.alert_email == "oncall@example.com"


def test_from_cdk_json_context():
    app = core.App(context={"consumers": ["inventory"], "alarm_period_minutes": 1})

    settings = FanoutSettings.from_context(app.node)

    assert settings.consumers == ("inventory",)
    assert settings.alarm_period_minutes == 1


def test_non_numeric_context():
    app = core.App(context={"batch_size": "lots"})

    with pytest.raises(ValueError, match="batch_size"):
        FanoutSettings.from_context(app.node)


def test_fractional_context_number_rejected():
    app = core.App(context={"batch_size": 5.9})

    with pytest.raises(ValueError, match="batch_size"):
        FanoutSettings.from_context(app.node)


def test_whole_context_number_accepted():
    app = core.App(context={"batch_size": 5.0})

    assert FanoutSettings.from_context(app.node).batch_size == 5


def test_scalar_consumers_context_rejected():
    app = core.App(context={"consumers": 5})

    with pytest.raises(ValueError, match="consumers"):
        FanoutSettings.from_context(app.node)
