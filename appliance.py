"""HTTP client for the plant watering appliance.

Handles the humidity poll (GET /humidity), the watering command
(POST /water) and the periodic poll loop. Every failure is caught at the
HTTP call, logged once and turned into a tagged result; nothing here
raises to the UI.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

import requests

from constants import (
    DEVICE_ADDRESS,
    HUMIDITY_PATH,
    WATER_PATH,
    POLL_INTERVAL,
    HTTP_TIMEOUT,
    WATER_ON,
    WATER_OFF,
)
from humidity import (
    FailureKind,
    HumidityReading,
    PayloadError,
    humidity_percent,
    parse_humidity_payload,
)
from plant_state import PlantState

logger = logging.getLogger(__name__)


class ClientPhase(str, Enum):
    IDLE = "Idle"
    POLLING = "Polling"
    AWAITING_COMMAND = "AwaitingCommandResponse"


class ApplianceClient:
    """Talks to one appliance at a fixed base address.

    requests is blocking, so each call is pushed to a worker thread with
    asyncio.to_thread and only the await is a suspension point. State is
    written back on the event loop after the await returns.
    """

    def __init__(self, address: str = DEVICE_ADDRESS, state: Optional[PlantState] = None,
                 timeout: float = HTTP_TIMEOUT, session: Optional[requests.Session] = None,
                 interval: float = POLL_INTERVAL):
        self.address = address.rstrip("/")
        self.state = state if state is not None else PlantState()
        self.timeout = timeout
        self.interval = interval
        self.session = session if session is not None else requests.Session()
        self.running = False
        self._polling = False  # True while poll_loop is active
        self._polls_in_flight = 0  # loop poll and a manual refresh may overlap
        self.command_in_flight = False

    @property
    def poll_in_flight(self) -> bool:
        return self._polls_in_flight > 0

    @property
    def phase(self) -> ClientPhase:
        """A command may be sent mid-poll; the command wins for display."""
        if self.command_in_flight:
            return ClientPhase.AWAITING_COMMAND
        if self.poll_in_flight:
            return ClientPhase.POLLING
        return ClientPhase.IDLE

    @property
    def humidity_url(self) -> str:
        return f"{self.address}{HUMIDITY_PATH}"

    @property
    def water_url(self) -> str:
        return f"{self.address}{WATER_PATH}"

    # ---- Humidity Poller ----

    async def poll(self) -> HumidityReading:
        """Fetch the raw sensor value and convert it to a percentage.

        Never raises. On failure the reading is tagged with the failure
        kind and carries 0%, which is also what lands in ``state.humidity``.
        """
        self._polls_in_flight += 1
        try:
            reading = await self._fetch_reading()
        finally:
            self._polls_in_flight -= 1
        if not reading.is_ok:
            logger.error("Humidity poll failed (%s): %s", reading.kind.value, reading.detail)
        else:
            logger.debug("Humidity: %d%% (raw %d)", reading.percent, reading.raw)
        self.state.apply_reading(reading)
        return reading

    async def _fetch_reading(self) -> HumidityReading:
        try:
            response = await asyncio.to_thread(
                self.session.get, self.humidity_url, timeout=self.timeout)
        except requests.RequestException as e:
            return HumidityReading.failed(FailureKind.TRANSPORT, str(e))

        if not 200 <= response.status_code < 300:
            return HumidityReading.failed(
                FailureKind.STATUS, f"HTTP {response.status_code}")

        try:
            raw = parse_humidity_payload(response.json())
        except PayloadError as e:
            return HumidityReading.failed(FailureKind.PAYLOAD, str(e))
        except ValueError as e:
            # requests' JSONDecodeError is a ValueError
            return HumidityReading.failed(FailureKind.PAYLOAD, f"invalid JSON: {e}")

        return HumidityReading.ok(humidity_percent(raw), raw)

    # ---- Watering Commander ----

    async def set_watering(self, desired: bool) -> bool:
        """Send "1" or "0" to /water. Updates state only on HTTP 200.

        No retry and no short-circuit: sending the same value twice makes
        two requests.
        """
        command = WATER_ON if desired else WATER_OFF
        self.command_in_flight = True
        try:
            response = await asyncio.to_thread(
                self.session.post,
                self.water_url,
                data=command.encode("utf-8"),
                headers={"Content-Type": "text/plain; charset=utf-8"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Failed to send command %s: %s", command, e)
            return False
        finally:
            self.command_in_flight = False

        if response.status_code == 200:
            self.state.set_watering(desired)
            logger.info("Response: %s", response.text)
            return True

        logger.error("Failed to send command %s. Response code: %d",
                     command, response.status_code)
        return False

    async def toggle_watering(self) -> bool:
        """Request the opposite of the currently displayed watering flag."""
        return await self.set_watering(not self.state.watering)

    # ---- Poll Loop ----

    async def poll_loop(self, on_reading: Optional[Callable[[HumidityReading], None]] = None):
        """Poll every ``interval`` seconds until stop() or cancellation.

        Sleeps first, so the first reading arrives one interval after start.
        """
        if self._polling:
            logger.debug("Poll loop already running")
            return
        self.running = True
        self._polling = True
        try:
            while self.running:
                await asyncio.sleep(self.interval)
                if not self.running:
                    break
                reading = await self.poll()
                if on_reading:
                    on_reading(reading)
        finally:
            self._polling = False

    def stop(self):
        """Ask the poll loop to exit after its current sleep or request."""
        self.running = False

    def close(self):
        """Stop polling and release the HTTP connection pool."""
        self.stop()
        self.session.close()
