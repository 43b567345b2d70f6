"""Shared test fixtures."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from planner_mcp.config import GRAPH_BASE_URL


G = GRAPH_BASE_URL


@dataclass
class Call:
    method: str
    url: str
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)


class FakeRestClient:
    """
    Stands in for GraphRestClient.

    Responses are queued per (method, url) and consumed in order. A queued
    exception is raised instead of returned. Unexpected requests fail the test.
    """

    def __init__(self):
        self.calls: List[Call] = []
        self._queues: Dict[tuple, list] = {}

    def add(self, method: str, url: str, response: Any = "") -> "FakeRestClient":
        self._queues.setdefault((method, url), []).append(response)
        return self

    async def request(
        self,
        method: str,
        url: str,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        body = json.loads(content.decode("utf-8")) if content else None
        self.calls.append(Call(method, url, body, dict(headers or {})))
        queue = self._queues.get((method, url))
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response)

    def methods(self) -> List[tuple]:
        return [(c.method, c.url) for c in self.calls]

    def writes(self) -> List[Call]:
        return [c for c in self.calls if c.method != "GET"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_client():
    return FakeRestClient()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in (
        "PLANNER_MCP_CREDENTIAL",
        "CLIENT_ID",
        "TENANT_ID",
        "PLANNER_MCP_SCOPES",
        "PLANNER_MCP_TOOLSET",
        "PLANNER_MCP_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's ./.env out of the tests
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def sample_task():
    return {
        "@odata.etag": 'W/"task-etag"',
        "id": "T1",
        "planId": "P1",
        "bucketId": "B1",
        "title": "Review PR #123",
        "percentComplete": 0,
        "conversationThreadId": None,
    }


@pytest.fixture
def sample_plan():
    return {
        "@odata.etag": 'W/"plan-etag"',
        "id": "P1",
        "title": "Release",
        "owner": "legacy-group",
        "container": {"containerId": "G1", "type": "group", "url": f"{G}/groups/G1"},
    }
