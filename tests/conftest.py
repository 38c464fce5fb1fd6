"""Shared fixtures: a mocked requests.Session standing in for the appliance."""

import json
from unittest import mock

import pytest
import requests

from appliance import ApplianceClient
from plant_state import PlantState

ADDRESS = "http://appliance.test:5000"


def make_response(status: int = 200, body=b"") -> requests.Response:
    """Real requests.Response with a canned status and body."""
    response = requests.Response()
    response.status_code = status
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response._content = body
    response.encoding = "utf-8"
    return response


@pytest.fixture
def session():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def state():
    return PlantState()


@pytest.fixture
def client(session, state):
    return ApplianceClient(ADDRESS, state=state, session=session, interval=0)
