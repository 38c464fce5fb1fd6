import asyncio
import itertools
import logging
import threading

import pytest
import requests

from appliance import ApplianceClient, ClientPhase
from constants import HTTP_TIMEOUT
from humidity import FailureKind
from tests.conftest import ADDRESS, make_response


def errors(caplog):
    return [r for r in caplog.records if r.levelno == logging.ERROR]


@pytest.fixture(autouse=True)
def capture_client_logs(caplog):
    caplog.set_level(logging.INFO, logger="appliance")


# ---- Humidity Poller ----

async def test_poll_converts_raw_value(client, session, state):
    session.get.return_value = make_response(200, {"humidity": 512})

    reading = await client.poll()

    assert reading.is_ok
    assert reading.percent == 50
    assert reading.raw == 512
    assert state.humidity == 50
    session.get.assert_called_once_with(f"{ADDRESS}/humidity", timeout=HTTP_TIMEOUT)


@pytest.mark.parametrize("response, kind", [
    (make_response(500, "boom"), FailureKind.STATUS),
    (make_response(404, ""), FailureKind.STATUS),
    (make_response(200, "not json"), FailureKind.PAYLOAD),
    (make_response(200, {"moisture": 3}), FailureKind.PAYLOAD),
    (make_response(200, {"humidity": "wet"}), FailureKind.PAYLOAD),
])
async def test_poll_failure_yields_zero_and_one_error(client, session, state, caplog,
                                                      response, kind):
    state.watering = True
    session.get.return_value = response

    reading = await client.poll()

    assert reading.percent == 0
    assert not reading.is_ok
    assert reading.kind is kind
    assert state.humidity == 0
    assert state.stale
    assert state.watering is True
    assert len(errors(caplog)) == 1


async def test_poll_transport_error(client, session, caplog):
    session.get.side_effect = requests.ConnectionError("connection refused")

    reading = await client.poll()

    assert reading.kind is FailureKind.TRANSPORT
    assert reading.percent == 0
    assert len(errors(caplog)) == 1
    assert "connection refused" in errors(caplog)[0].getMessage()


async def test_poll_timeout_is_transport_error(client, session):
    session.get.side_effect = requests.Timeout("read timed out")
    reading = await client.poll()
    assert reading.kind is FailureKind.TRANSPORT


async def test_failed_poll_replaces_previous_value(client, session, state):
    session.get.return_value = make_response(200, {"humidity": 0})
    await client.poll()
    assert state.humidity == 100

    session.get.return_value = make_response(503, "")
    await client.poll()
    assert state.humidity == 0


# ---- Watering Commander ----

async def test_set_watering_on_success(client, session, state, caplog):
    session.post.return_value = make_response(200, "Motor ON")

    accepted = await client.set_watering(True)

    assert accepted is True
    assert state.watering is True
    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args == (f"{ADDRESS}/water",)
    assert kwargs["data"] == b"1"
    assert kwargs["headers"]["Content-Type"].startswith("text/plain")
    assert kwargs["timeout"] == HTTP_TIMEOUT
    infos = [r for r in caplog.records if r.levelno == logging.INFO]
    assert any("Motor ON" in r.getMessage() for r in infos)
    assert not errors(caplog)


async def test_set_watering_off_sends_zero(client, session, state):
    state.watering = True
    session.post.return_value = make_response(200, "Motor OFF")

    assert await client.set_watering(False)
    assert session.post.call_args.kwargs["data"] == b"0"
    assert state.watering is False


async def test_set_watering_rejected_leaves_state(client, session, state, caplog):
    session.post.return_value = make_response(503, "busy")

    accepted = await client.set_watering(True)

    assert accepted is False
    assert state.watering is False
    assert len(errors(caplog)) == 1
    assert "503" in errors(caplog)[0].getMessage()


async def test_set_watering_only_accepts_exactly_200(client, session, state):
    session.post.return_value = make_response(204, "")
    assert not await client.set_watering(True)
    assert state.watering is False


async def test_set_watering_transport_error(client, session, state, caplog):
    session.post.side_effect = requests.ConnectionError("unreachable")

    assert not await client.set_watering(True)
    assert state.watering is False
    assert len(errors(caplog)) == 1


async def test_repeated_command_is_not_short_circuited(client, session, state):
    session.post.return_value = make_response(200, "Motor ON")

    await client.set_watering(True)
    await client.set_watering(True)

    assert state.watering is True
    assert session.post.call_count == 2


async def test_toggle_sends_negation_of_displayed_flag(client, session, state):
    session.post.return_value = make_response(200, "ok")

    await client.toggle_watering()
    assert session.post.call_args.kwargs["data"] == b"1"
    assert state.watering is True

    await client.toggle_watering()
    assert session.post.call_args.kwargs["data"] == b"0"
    assert state.watering is False


async def test_polling_never_touches_watering(client, session, state):
    session.post.return_value = make_response(200, "ok")
    await client.set_watering(True)

    session.get.return_value = make_response(500, "")
    await client.poll()
    session.get.return_value = make_response(200, {"humidity": 100})
    await client.poll()

    assert state.watering is True


# ---- Poll Loop ----

async def test_poll_loop_runs_until_stopped(client, session):
    session.get.return_value = make_response(200, {"humidity": 1023})
    readings = []

    def on_reading(reading):
        readings.append(reading)
        if len(readings) == 3:
            client.stop()

    await asyncio.wait_for(client.poll_loop(on_reading=on_reading), timeout=5)

    assert [r.percent for r in readings] == [0, 0, 0]
    assert session.get.call_count == 3
    assert not client._polling


async def test_poll_loop_cancellation_clears_flag(session, state):
    client = ApplianceClient(ADDRESS, state=state, session=session, interval=60)
    task = asyncio.create_task(client.poll_loop())
    await asyncio.sleep(0)
    assert client._polling

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not client._polling
    session.get.assert_not_called()


async def test_close_stops_loop_and_session(client, session):
    client.running = True
    client.close()
    assert client.running is False
    session.close.assert_called_once()


def test_address_trailing_slash_is_trimmed(session):
    client = ApplianceClient("http://10.0.0.7:5000/", session=session)
    assert client.humidity_url == "http://10.0.0.7:5000/humidity"
    assert client.water_url == "http://10.0.0.7:5000/water"


def test_phase_prefers_command_over_poll(client):
    assert client.phase is ClientPhase.IDLE
    client._polls_in_flight = 1
    assert client.phase is ClientPhase.POLLING
    client.command_in_flight = True
    assert client.phase is ClientPhase.AWAITING_COMMAND


async def test_phase_stays_polling_while_overlapping_poll_is_pending(client, session):
    release = threading.Event()
    calls = itertools.count()

    def get(url, timeout):
        if next(calls) == 0:
            release.wait(5)
        return make_response(200, {"humidity": 512})

    session.get.side_effect = get

    slow = asyncio.create_task(client.poll())
    for _ in range(100):
        if client.poll_in_flight:
            break
        await asyncio.sleep(0.01)

    await client.poll()
    assert client.phase is ClientPhase.POLLING

    release.set()
    await slow
    assert client.phase is ClientPhase.IDLE
