"""Sensor value conversion and the tagged humidity reading type.

The appliance reports a raw resistive sensor value in [0, 1023] where
0 means saturated soil and 1023 means dry. The UI wants a percentage.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from constants import SENSOR_MAX


class PayloadError(ValueError):
    """The /humidity response body did not carry a usable reading."""


class FailureKind(str, Enum):
    TRANSPORT = "transport"   # Unreachable host, timeout, connection reset
    STATUS = "status"         # Non-2xx response
    PAYLOAD = "payload"       # Missing or malformed JSON field


def humidity_percent(raw: int) -> int:
    """Convert a raw sensor value to a 0-100 humidity percentage."""
    percent = round((1 - raw / SENSOR_MAX) * 100)
    return max(0, min(100, percent))


def parse_humidity_payload(body) -> int:
    """Pull the required integer ``humidity`` field out of a decoded JSON body."""
    if not isinstance(body, dict):
        raise PayloadError(f"expected JSON object, got {type(body).__name__}")
    if "humidity" not in body:
        raise PayloadError("missing 'humidity' field")
    value = body["humidity"]
    # bool is an int subclass; "true" is not a sensor reading
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadError(f"'humidity' is not an integer: {value!r}")
    return value


@dataclass(frozen=True)
class HumidityReading:
    """Result of one poll: either a percentage or a failure kind.

    Failed readings keep ``percent == 0`` so a display that only looks at
    the number behaves like the original client, while ``is_ok`` and
    ``kind`` let callers tell a real 0% apart from a fetch that failed.
    """
    percent: int
    raw: Optional[int] = None
    kind: Optional[FailureKind] = None
    detail: str = ""

    @classmethod
    def ok(cls, percent: int, raw: Optional[int] = None) -> "HumidityReading":
        return cls(percent=percent, raw=raw)

    @classmethod
    def failed(cls, kind: FailureKind, detail: str = "") -> "HumidityReading":
        return cls(percent=0, kind=kind, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.kind is None

    def describe(self) -> str:
        if self.is_ok:
            return f"{self.percent}%"
        return f"{self.kind.value} error: {self.detail}" if self.detail else f"{self.kind.value} error"
