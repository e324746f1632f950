"""Shared test doubles for the judgment oracle and the platform API."""

import json
from typing import Callable, Optional, Union

import httpx
import pytest

from reputation_system.errors import OracleError
from reputation_system.llm.oracle import JudgmentOracle

Reply = Union[str, dict, BaseException]


def prompt_kind(system_prompt: str) -> str:
    if "sentimentScore" in system_prompt:
        return "sentiment"
    if '"verdict"' in system_prompt:
        return "verdict"
    if '"correction"' in system_prompt:
        return "correction"
    return "unknown"


class ScriptedOracle(JudgmentOracle):
    """Oracle double answering by prompt kind: sentiment, verdict or correction.

    A dict reply is sent as JSON, a string verbatim, an exception is raised.
    A kind with no scripted reply fails like an unreachable oracle.
    """

    def __init__(self, timeout_seconds: float = 1.0, **replies: Reply) -> None:
        super().__init__(timeout_seconds=timeout_seconds)
        self.replies = dict(replies)
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, prompt: str) -> str:
        kind = prompt_kind(system_prompt)
        self.calls.append((kind, prompt))
        reply = self.replies.get(kind)
        if reply is None:
            raise OracleError(f"no scripted {kind} reply")
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply

    def calls_of(self, kind: str) -> list[str]:
        return [prompt for k, prompt in self.calls if k == kind]


class RecordingPlatform:
    """httpx handler recording every request and answering with a fixed status."""

    def __init__(self, status_code: int = 201, body: Optional[dict] = None) -> None:
        self.status_code = status_code
        self.body = body if body is not None else {"id": "reply-1"}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def make_oracle() -> Callable[..., ScriptedOracle]:
    return ScriptedOracle


@pytest.fixture
def platform() -> RecordingPlatform:
    return RecordingPlatform()
