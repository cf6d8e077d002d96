"""
Pytest fixtures for the meeting bridge backend.

Every test gets a fresh in-memory SQLite database. MSAL is replaced by a
fake device-flow client and Microsoft Graph by an httpx mock transport.
"""

import json

import httpx
import pytest
from sqlalchemy.pool import StaticPool

from database import build_engine, build_session_factory, create_db_and_tables, get_session
from errors import UpstreamError
from main import app, get_flow_client, get_graph_client
from services.calendar_service import GraphCalendarClient
from services.token_store import TokenStore

GRAPH_BASE_URL = "https://graph.test/v1.0"


class FakeDeviceFlowClient:
    """Stands in for DeviceFlowClient; records how often MSAL would be hit."""

    def __init__(self, user_code="ABCD-1234", token_result=None):
        self.user_code = user_code
        self.token_result = token_result or {"access_token": "fresh-token", "expires_in": 3600}
        self.initiate_calls = 0
        self.acquired_flows = []

    async def initiate(self):
        self.initiate_calls += 1
        return {
            "user_code": self.user_code,
            "device_code": "device-code-xyz",
            "verification_uri": "https://microsoft.com/devicelogin",
            "expires_in": 900,
            "interval": 5,
        }

    async def acquire_token(self, flow):
        self.acquired_flows.append(flow)
        if "access_token" not in self.token_result:
            raise UpstreamError(self.token_result.get("error_description", "failed"))
        return self.token_result


class GraphRecorder:
    """httpx MockTransport handler that records requests sent to Graph."""

    def __init__(self, status_code=201, event=None):
        self.status_code = status_code
        self.event = event or {"id": "AAMkAGI2", "subject": "Planning", "isOnlineMeeting": True}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.event)

    def payloads(self):
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
async def db_engine():
    engine = build_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    async with build_session_factory(db_engine)() as session:
        yield session


@pytest.fixture
def store(db_session):
    return TokenStore(db_session)


@pytest.fixture
def flow_client():
    return FakeDeviceFlowClient()


@pytest.fixture
def graph():
    return GraphRecorder()


@pytest.fixture
async def graph_client(graph):
    http = httpx.AsyncClient(base_url=GRAPH_BASE_URL, transport=httpx.MockTransport(graph))
    client = GraphCalendarClient(http)
    yield client
    await client.aclose()


@pytest.fixture
async def api(db_session, flow_client, graph_client):
    """HTTP client wired to the app with test dependencies."""

    async def override_session():
        yield db_session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_flow_client] = lambda: flow_client
    app.dependency_overrides[get_graph_client] = lambda: graph_client
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
