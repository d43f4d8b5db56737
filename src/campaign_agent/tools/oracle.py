"""Decision oracles: propose the next action for a campaign task."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Protocol
from urllib import error, request

from pydantic import ValidationError

from campaign_agent.errors import OracleError
from campaign_agent.storage.models import Artifact
from campaign_agent.tools.schemas import OracleDecision, OracleReply, Proposal

if TYPE_CHECKING:
    from campaign_agent.config.settings import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "Return JSON only. Allowed actions: fetch, request_user_input."

_URL_PATTERN = re.compile(r"https?://[^\s<>\"')\]]+")


class Oracle(Protocol):
    """Interface for the decision call made once per step."""

    def propose(self, task_description: str, artifacts: list[Artifact]) -> OracleDecision: ...


class OpenAIOracle:
    """Oracle backed by the OpenAI chat completions REST API.

    Failures are not retried: transport errors, HTTP errors, non-JSON content and
    replies that do not match ``OracleReply`` all raise ``OracleError``.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 30.0,
    ) -> None:
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is missing")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def propose(self, task_description: str, artifacts: list[Artifact]) -> OracleDecision:
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _user_prompt(task_description, artifacts)},
            ],
        }
        response_json = self._request(payload)
        content = _extract_content(response_json)
        return parse_reply(content)

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace")
            raise OracleError(
                f"Oracle request failed with status {exc.code}: {message[:400]}"
            ) from exc
        except error.URLError as exc:
            raise OracleError(f"Oracle request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise OracleError(f"Oracle request timed out after {self.timeout_s:.1f}s") from exc

        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise OracleError("Oracle returned a non-JSON response") from exc


class DeterministicOracle:
    """Offline oracle: fetch the first unseen URL in the task, otherwise no-op."""

    def propose(self, task_description: str, artifacts: list[Artifact]) -> OracleDecision:
        seen = {item.key for item in artifacts if item.type == "research"}
        for match in _URL_PATTERN.finditer(task_description):
            url = match.group(0).rstrip(".,;:")
            if url not in seen:
                return OracleDecision(
                    proposal=Proposal(type="fetch", argument=url, reason="url in task"),
                    explanation=f"Fetching {url} for research.",
                )
        return OracleDecision(proposal=Proposal(type="no_op", reason="nothing to fetch"))


def parse_reply(content: str) -> OracleDecision:
    """Decode the model's JSON text into a decision, rejecting anything malformed."""
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise OracleError("Oracle reply is not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise OracleError("Oracle reply must be a JSON object")
    try:
        return OracleReply.model_validate(parsed).to_decision()
    except ValidationError as exc:
        raise OracleError(f"Oracle reply does not match the proposal schema: {exc}") from exc


def build_oracle(settings: Settings) -> Oracle:
    mode = settings.oracle_mode.lower()
    if mode == "deterministic":
        return DeterministicOracle()
    if mode == "llm":
        return OpenAIOracle(
            api_key=settings.resolved_openai_api_key(),
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
        )
    raise ValueError(f"Unsupported oracle mode: {settings.oracle_mode}")


def _user_prompt(task_description: str, artifacts: list[Artifact]) -> str:
    return json.dumps(
        {
            "task": task_description,
            "artifacts": [
                {"type": item.type, "key": item.key, "content": item.content}
                for item in artifacts
            ],
        },
        ensure_ascii=True,
    )


def _extract_content(response_json: dict[str, Any]) -> str:
    choices = response_json.get("choices") if isinstance(response_json, dict) else None
    if not isinstance(choices, list) or not choices:
        raise OracleError("Oracle response did not contain choices")

    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        message = {}
    content = message.get("content")
    if isinstance(content, str) and content.strip():
        return content
    if isinstance(content, list):
        text_segments: list[str] = []
        for item in content:
            if isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str):
                    text_segments.append(text)
        merged = "".join(text_segments).strip()
        if merged:
            return merged
    logger.warning("oracle_reply event=empty_content model_response_keys=%s", sorted(message))
    raise OracleError("Oracle response content could not be parsed as text")
