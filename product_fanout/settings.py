from dataclasses import dataclass
from typing import Optional

from constructs import Node

NEW_PRODUCT_TOPIC_NAME = "new_product_topic"
ALERTS_TOPIC_NAME = "alerts_topic"

# each of these has a `<name>_handler` in consumers/consumers.py
KNOWN_CONSUMERS = ("marketing", "inventory", "analytics")

# sqs event sources cap batches at 10 unless a batching window is set
MAX_BATCH_SIZE = 10


@dataclass(frozen=True)
class FanoutSettings:
    consumers: tuple = KNOWN_CONSUMERS
    batch_size: int = 5
    alarm_period_minutes: int = 5
    error_threshold: int = 1
    alert_email: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.consumers, (list, tuple)):
            raise ValueError(f"consumers must be a list of names, got {self.consumers!r}")
        if not self.consumers:
            raise ValueError("At least one consumer is required")
        if len(set(self.consumers)) != len(self.consumers):
            raise ValueError(f"Duplicate consumers: {self.consumers}")
        unknown = [consumer for consumer in self.consumers if consumer not in KNOWN_CONSUMERS]
        if unknown:
            raise ValueError(f"No handler for consumers {unknown}, expected some of {KNOWN_CONSUMERS}")
        for key in ("batch_size", "alarm_period_minutes", "error_threshold"):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{key} must be an integer, got {value!r}")
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}")
        if self.alarm_period_minutes < 1:
            raise ValueError(f"alarm_period_minutes must be at least 1, got {self.alarm_period_minutes}")
        if self.error_threshold < 1:
            raise ValueError(f"error_threshold must be at least 1, got {self.error_threshold}")

    @classmethod
    def from_context(cls, node: Node) -> "FanoutSettings":
        """Build settings from cdk context, e.g. `cdk deploy -c batch_size=10`.

        Context passed on the command line is always a string, so numbers are coerced here.
        """
        overrides = {}

        consumers = node.try_get_context("consumers")
        if consumers is not None:
            if isinstance(consumers, str):
                consumers = [consumer.strip() for consumer in consumers.split(",") if consumer.strip()]
            elif not isinstance(consumers, (list, tuple)):
                raise ValueError(
                    f"Context value 'consumers' must be a list or comma separated string, got {consumers!r}"
                )
            overrides["consumers"] = tuple(consumers)

        for key in ("batch_size", "alarm_period_minutes", "error_threshold"):
            value = node.try_get_context(key)
            if value is None:
                continue
            overrides[key] = _context_int(key, value)

        alert_email = node.try_get_context("alert_email")
        if alert_email:
            overrides["alert_email"] = alert_email

        return cls(**overrides)


def _context_int(key, value):
    # json numbers can come through jsii as floats, so whole floats are let through
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ValueError(f"Context value '{key}' must be an integer, got {value!r}")
