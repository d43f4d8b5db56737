from __future__ import annotations

import io
import json
from typing import Any
from urllib import error

import pytest

import campaign_agent.tools.oracle as oracle_module
from campaign_agent.config.settings import Settings
from campaign_agent.errors import OracleError
from campaign_agent.storage.models import Artifact
from campaign_agent.tools.oracle import (
    DeterministicOracle,
    OpenAIOracle,
    build_oracle,
    parse_reply,
)


class _FakeResponse:
    def __init__(self, payload: Any) -> None:
        self._body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *_exc: object) -> None:
        return None


def _completion(content: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_parse_reply_maps_flat_json_to_decision() -> None:
    result = parse_reply(
        json.dumps(
            {
                "action": "fetch",
                "argument": "https://example.com/a",
                "reason": "need source",
                "explanation": "Looking it up.",
            }
        )
    )

    assert result.proposal.type == "fetch"
    assert result.proposal.argument == "https://example.com/a"
    assert result.proposal.reason == "need source"
    assert result.explanation == "Looking it up."


def test_parse_reply_keeps_unknown_action_types() -> None:
    result = parse_reply('{"action": "summarize"}')

    assert result.proposal.type == "summarize"
    assert result.explanation is None


def test_parse_reply_ignores_extra_keys() -> None:
    result = parse_reply(
        json.dumps({"action": "no_op", "argument": None, "confidence": 0.9, "notes": ["x"]})
    )

    assert result.proposal.type == "no_op"
    assert result.proposal.argument is None


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        '{"argument": "https://example.com"}',
        '{"action": ""}',
        '{"action": "fetch"}',
        '{"action": "request_user_input", "argument": "  "}',
        '{"action": "fetch", "argument": null, "confidence": 0.9}',
    ],
)
def test_parse_reply_rejects_malformed_replies(content: str) -> None:
    with pytest.raises(OracleError):
        parse_reply(content)


def test_openai_oracle_sends_task_and_artifacts(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["timeout"] = timeout
        captured["headers"] = dict(req.header_items())
        captured["body"] = json.loads(req.data.decode("utf-8"))
        return _FakeResponse(
            _completion('{"action": "request_user_input", "argument": "Which X?"}')
        )

    monkeypatch.setattr(oracle_module.request, "urlopen", fake_urlopen)
    oracle = OpenAIOracle(api_key="sk-test", base_url="https://llm.local/v1/", timeout_s=3.0)

    result = oracle.propose(
        "Process: find X",
        [Artifact(type="user_message", key="k1", content="find X")],
    )

    assert result.proposal.type == "request_user_input"
    assert result.proposal.argument == "Which X?"
    assert captured["url"] == "https://llm.local/v1/chat/completions"
    assert captured["timeout"] == 3.0
    assert captured["headers"]["Authorization"] == "Bearer sk-test"
    body = captured["body"]
    assert body["temperature"] == 0
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0]["content"] == oracle_module.SYSTEM_PROMPT
    assert json.loads(body["messages"][1]["content"]) == {
        "task": "Process: find X",
        "artifacts": [{"type": "user_message", "key": "k1", "content": "find X"}],
    }


def test_openai_oracle_wraps_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(req, timeout):
        raise error.HTTPError(req.full_url, 429, "Too Many Requests", {}, io.BytesIO(b"slow down"))

    monkeypatch.setattr(oracle_module.request, "urlopen", fake_urlopen)
    oracle = OpenAIOracle(api_key="sk-test")

    with pytest.raises(OracleError, match="status 429"):
        oracle.propose("Process: x", [])


def test_openai_oracle_rejects_response_without_choices(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        oracle_module.request,
        "urlopen",
        lambda req, timeout: _FakeResponse({"choices": []}),
    )

    with pytest.raises(OracleError, match="choices"):
        OpenAIOracle(api_key="sk-test").propose("Process: x", [])


def test_openai_oracle_requires_api_key() -> None:
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        OpenAIOracle(api_key="")


def test_deterministic_oracle_fetches_unseen_urls_once() -> None:
    oracle = DeterministicOracle()
    task = "Process: compare https://example.com/a and https://example.com/b."

    first = oracle.propose(task, [])
    assert (first.proposal.type, first.proposal.argument) == ("fetch", "https://example.com/a")

    seen = [Artifact(type="research", key="https://example.com/a", content="A")]
    second = oracle.propose(task, seen)
    assert (second.proposal.type, second.proposal.argument) == ("fetch", "https://example.com/b")

    seen.append(Artifact(type="research", key="https://example.com/b", content="B"))
    assert oracle.propose(task, seen).proposal.type == "no_op"


def test_build_oracle_selects_mode() -> None:
    assert isinstance(build_oracle(Settings(oracle_mode="deterministic")), DeterministicOracle)
    llm = build_oracle(Settings(oracle_mode="llm", openai_api_key="sk-test"))
    assert isinstance(llm, OpenAIOracle)
    with pytest.raises(ValueError, match="Unsupported oracle mode"):
        build_oracle(Settings(oracle_mode="crystal-ball"))
