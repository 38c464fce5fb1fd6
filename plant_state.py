"""Data class tracking the observed state of the watering appliance."""

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from humidity import HumidityReading


@dataclass
class PlantState:
    """Last known humidity and watering flag, owned by the client."""
    humidity: int = 0                    # % from the most recent poll (0 on failure)
    watering: bool = False               # True once the appliance acknowledged "1"
    last_reading: Optional[HumidityReading] = None
    last_poll: float = 0.0               # time.monotonic() of last poll
    last_command: float = 0.0            # time.monotonic() of last acknowledged command
    poll_count: int = 0
    failed_polls: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def apply_reading(self, reading: HumidityReading) -> None:
        """Overwrite humidity with a fresh reading. Never touches ``watering``."""
        with self._lock:
            self.humidity = reading.percent
            self.last_reading = reading
            self.last_poll = time.monotonic()
            self.poll_count += 1
            if not reading.is_ok:
                self.failed_polls += 1

    def set_watering(self, desired: bool) -> None:
        """Record an acknowledged command. Only the commander's success path calls this."""
        with self._lock:
            self.watering = desired
            self.last_command = time.monotonic()

    @property
    def stale(self) -> bool:
        """True when the last poll failed and ``humidity`` is a placeholder."""
        return self.last_reading is not None and not self.last_reading.is_ok
