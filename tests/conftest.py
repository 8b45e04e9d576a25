import json
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any

import pytest

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="gateway-logs-"))

from tracking_assistant.assistant.backend import RunSnapshot, ToolCall, ToolOutput
from tracking_assistant.carriers import UpsAdapter, UspsAdapter
from tracking_assistant.classifier import Carrier
from tracking_assistant.config import (
    GatewaySettings,
    RunSettings,
    UpsSettings,
    UspsSettings,
)
from tracking_assistant.context import GatewayContext
from tracking_assistant.conversations import InMemoryConversationLogStore


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: str | None = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        return json.loads(self.text)


class FakeSession:
    """Stand-in for ``requests.Session`` replaying canned responses in order."""

    def __init__(self, *responses: Any):
        self._responses = list(responses)
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False

    def _next(self, method: str, url: str, kwargs: dict[str, Any]) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if not self._responses:
            raise AssertionError(f"unexpected {method} {url}")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, kwargs)

    def close(self) -> None:
        self.closed = True


@dataclass
class ScriptedBackend:
    """Run backend that replays snapshots; the last one repeats forever."""

    snapshots: list[RunSnapshot]
    reply: str | None = "Hello from the assistant"
    thread_id: str = "thread_new"
    created_threads: int = 0
    messages: list[tuple[str, str]] = field(default_factory=list)
    runs: list[tuple[str, str]] = field(default_factory=list)
    polls: int = 0
    submissions: list[list[ToolOutput]] = field(default_factory=list)
    closed: bool = False

    def _next(self) -> RunSnapshot:
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]

    async def create_thread(self) -> str:
        self.created_threads += 1
        return self.thread_id

    async def add_user_message(self, thread_id: str, text: str) -> None:
        self.messages.append((thread_id, text))

    async def create_run(self, thread_id: str, assistant_id: str) -> RunSnapshot:
        self.runs.append((thread_id, assistant_id))
        return self._next()

    async def retrieve_run(self, thread_id: str, run_id: str) -> RunSnapshot:
        self.polls += 1
        return self._next()

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str, outputs: list[ToolOutput]
    ) -> RunSnapshot:
        self.submissions.append(list(outputs))
        return self._next()

    async def latest_assistant_reply(self, thread_id: str) -> str | None:
        return self.reply

    async def close(self) -> None:
        self.closed = True


def snapshot(status: str, *tool_calls: ToolCall, last_error: str | None = None) -> RunSnapshot:
    return RunSnapshot(
        id="run_1", status=status, tool_calls=list(tool_calls), last_error=last_error
    )


FAST_RUNS = RunSettings(poll_interval=0, max_polls=50, timeout_seconds=5)


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(
        openai_api_key="sk-test",
        assistant_id="asst_chat",
        analytics_assistant_id="asst_analytics",
        ups=UpsSettings(client_id="ups-id", client_secret="ups-secret"),
        usps=UspsSettings(user_id="USPSUSER"),
        run=FAST_RUNS,
    )


@pytest.fixture
def log_store() -> InMemoryConversationLogStore:
    return InMemoryConversationLogStore()


@pytest.fixture
def make_context(settings, log_store):
    def _make(
        backend: ScriptedBackend | None = None,
        ups_session: FakeSession | None = None,
        usps_session: FakeSession | None = None,
    ) -> GatewayContext:
        backend = backend or ScriptedBackend([snapshot("completed")])
        carriers = {
            Carrier.UPS: UpsAdapter(settings.ups, session=ups_session or FakeSession()),
            Carrier.USPS: UspsAdapter(
                settings.usps, session=usps_session or FakeSession()
            ),
        }
        return GatewayContext(
            settings=settings, log_store=log_store, backend=backend, carriers=carriers
        )

    return _make
