"""FastAPI stand-in for the watering appliance.

Serves the same two endpoints as the real device so the client can be
run without hardware:

    GET  /humidity  ->  {"humidity": <raw 0-1023>}
    POST /water     <-  text "1" (pump on) or "0" (pump off)

The raw value drifts drier on every read while the pump is off and
wetter while it is on.
"""

import logging
import threading

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from constants import SENSOR_MAX, WATER_ON, WATER_OFF

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5000


class HumidityResponse(BaseModel):
    humidity: int


class SimulatedPlant:
    """Soil moisture model behind the simulator endpoints."""

    DRY_STEP = 8      # Raw units added per read while idle
    WET_STEP = 60     # Raw units removed per read while watering

    def __init__(self, raw: int = 600):
        self.raw = raw
        self.watering = False
        self.requests = 0
        self._lock = threading.Lock()

    def read(self) -> int:
        with self._lock:
            step = -self.WET_STEP if self.watering else self.DRY_STEP
            self.raw = max(0, min(SENSOR_MAX, self.raw + step))
            self.requests += 1
            return self.raw

    def set_pump(self, on: bool):
        with self._lock:
            self.watering = on
            self.requests += 1


def create_app(plant: SimulatedPlant = None) -> FastAPI:
    """Build a simulator app around ``plant`` (a fresh one if not given)."""
    app = FastAPI(title="Plant Watering Appliance Simulator")
    app.state.plant = plant or SimulatedPlant()

    @app.get("/humidity", response_model=HumidityResponse)
    async def get_humidity():
        """Return the current raw sensor value."""
        return {"humidity": app.state.plant.read()}

    @app.post("/water", response_class=PlainTextResponse)
    async def post_water(request: Request):
        """Switch the pump from a plain-text "1" / "0" body."""
        command = (await request.body()).decode("utf-8", errors="replace").strip()
        if command not in (WATER_ON, WATER_OFF):
            logger.warning("Rejected water command %r", command)
            return PlainTextResponse(f"Invalid command: {command!r}", status_code=400)
        app.state.plant.set_pump(command == WATER_ON)
        logger.info("Pump %s", "ON" if command == WATER_ON else "OFF")
        return f"Motor {'ON' if command == WATER_ON else 'OFF'}"

    return app


app = create_app()


def build_server(host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> uvicorn.Server:
    """uvicorn server for the module-level app, not yet started."""
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    return uvicorn.Server(config)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print(f"  Simulated appliance: http://0.0.0.0:{DEFAULT_PORT}")
    build_server(host="0.0.0.0").run()
