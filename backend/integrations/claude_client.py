"""
Claude AI Client — content generation over the Anthropic Messages API.

Used by the send_email action to rewrite tag-resolved email copy for one
lead. Features:
- httpx connection pooling (HTTP/2)
- Retry with backoff on rate limits, overload and timeouts
- Structured output via forced tool use (``ask_json``)
- JSON extraction fallback for plain-text replies
- Token usage tracking
"""

import asyncio
import json
import re
import time
from typing import Any, Dict, List, Optional

import httpx
import structlog

from app.config import Settings, get_settings
from core.exceptions import CollaboratorError
from integrations.base import ContentGenerator, MessageContent
from workflow.models import Lead
from workflow.retry_strategies import RetryStrategy

logger = structlog.get_logger(__name__)


# ─── JSON extraction ──────────────────────────────────────────

def extract_json(text: str) -> Any:
    """Extract a JSON value from a reply that may contain prose or fences.

    Tries a direct parse, then a fenced ```json block, then the first
    balanced ``{...}`` object.

    Raises:
        ValueError: If no JSON value can be found
    """
    if not text or not text.strip():
        raise ValueError("Empty response")

    clean = text.strip()
    try:
        return json.loads(clean)
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json|JSON)?\s*\n?(.*?)```", clean, re.DOTALL)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except json.JSONDecodeError:
            pass

    start = clean.find("{")
    if start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(clean)):
            c = clean[i]
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = not in_string
            elif not in_string and c == "{":
                depth += 1
            elif not in_string and c == "}":
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(clean[start:i + 1])
                    except json.JSONDecodeError:
                        break

    raise ValueError(f"Could not extract JSON from response: {clean[:200]}")


class TokenUsageTracker:
    """Running token totals for the process."""

    def __init__(self):
        self.total_input_tokens: int = 0
        self.total_output_tokens: int = 0
        self.total_requests: int = 0
        self.failed_requests: int = 0

    def record(self, input_tokens: int, output_tokens: int, success: bool = True):
        self.total_requests += 1
        if success:
            self.total_input_tokens += input_tokens
            self.total_output_tokens += output_tokens
        else:
            self.failed_requests += 1

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
        }


# ─── Client ───────────────────────────────────────────────────

class ClaudeClient:
    """Minimal Messages API client with retries."""

    API_BASE = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.usage = TokenUsageTracker()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.ANTHROPIC_API_KEY)

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """Create the pooled HTTP client."""
        if not self.is_configured:
            raise CollaboratorError("Claude API key not configured")
        if self._client is not None:
            return
        options: Dict[str, Any] = {}
        if self._transport is not None:
            options["transport"] = self._transport
        else:
            options["http2"] = True
            options["limits"] = httpx.Limits(max_connections=20, max_keepalive_connections=10)
        self._client = httpx.AsyncClient(
            base_url=self.API_BASE,
            headers={
                "x-api-key": self.settings.ANTHROPIC_API_KEY,
                "anthropic-version": self.API_VERSION,
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(float(self.settings.CLAUDE_TIMEOUT), connect=10.0),
            **options,
        )
        logger.info("Claude client ready", model=self.settings.CLAUDE_MODEL)

    async def disconnect(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _make_request(
        self,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        tools: Optional[List[Dict]] = None,
        tool_choice: Optional[Dict] = None,
    ) -> Dict[str, Any]:
        """POST /messages with retries. Raises CollaboratorError when exhausted."""
        self.connect()

        settings = self.settings
        payload: Dict[str, Any] = {
            "model": settings.CLAUDE_MODEL,
            "max_tokens": settings.CLAUDE_MAX_TOKENS,
            "temperature": settings.CLAUDE_TEMPERATURE,
            "messages": messages,
        }
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = tools
        if tool_choice:
            payload["tool_choice"] = tool_choice

        strategy = RetryStrategy.for_claude(settings)
        attempts = strategy.attempts
        last_error = None
        for attempt in range(attempts):
            start_time = time.monotonic()
            try:
                response = await self._client.post("/messages", json=payload)
            except httpx.TimeoutException:
                logger.warning("Claude request timeout", attempt=attempt)
                self.usage.record(0, 0, success=False)
                last_error = "Request timed out"
            except httpx.HTTPError as e:
                logger.warning("Claude request failed", attempt=attempt, error=str(e))
                self.usage.record(0, 0, success=False)
                last_error = str(e)
            else:
                if response.status_code == 200:
                    data = response.json()
                    usage = data.get("usage", {})
                    self.usage.record(usage.get("input_tokens", 0), usage.get("output_tokens", 0))
                    logger.debug(
                        "Claude request completed",
                        duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                    )
                    return data

                self.usage.record(0, 0, success=False)
                last_error = f"API error {response.status_code}: {response.text[:200]}"
                if response.status_code not in (429, 500, 502, 503, 529):
                    logger.error("Claude API error", status=response.status_code)
                    break
                logger.warning("Claude API unavailable", status=response.status_code, attempt=attempt)

            if attempt < attempts - 1:
                await asyncio.sleep(strategy.delay_for(attempt + 1))

        raise CollaboratorError(f"Claude API failed after {attempt + 1} attempt(s): {last_error}")

    async def ask_json(
        self,
        prompt: str,
        schema: Dict[str, Any],
        tool_name: str = "structured_output",
        tool_description: str = "Return the result as structured JSON",
        system: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Ask for output matching ``schema`` by forcing a tool call."""
        response = await self._make_request(
            messages=[{"role": "user", "content": prompt}],
            system=system or self.settings.CLAUDE_SYSTEM_PROMPT,
            tools=[{"name": tool_name, "description": tool_description, "input_schema": schema}],
            tool_choice={"type": "tool", "name": tool_name},
        )

        blocks = response.get("content", [])
        for block in blocks:
            if block.get("type") == "tool_use" and block.get("name") == tool_name:
                return block.get("input", {})
        for block in blocks:
            if block.get("type") == "text":
                try:
                    return extract_json(block["text"])
                except ValueError:
                    pass

        raise CollaboratorError(
            f"Claude did not return structured output. "
            f"Response blocks: {[b.get('type') for b in blocks]}"
        )


# ─── Content generation ───────────────────────────────────────

EMAIL_SCHEMA = {
    "type": "object",
    "properties": {
        "subject": {"type": "string", "description": "Email subject line"},
        "body": {"type": "string", "description": "Email body as simple HTML paragraphs"},
    },
    "required": ["subject", "body"],
}


def build_email_prompt(lead: Lead, context: Dict[str, Any]) -> str:
    sender = context.get("sender") or {}
    facts = {
        "name": lead.name,
        "company": lead.company,
        "score": lead.score,
        "status": lead.status,
        "insights": lead.insights,
        "industry": lead.knowledge("industry"),
        "title": lead.knowledge("title"),
        "company_overview": lead.knowledge("company_overview"),
    }
    facts = {key: value for key, value in facts.items() if value not in (None, "")}
    return (
        "Rewrite this outreach email so it speaks directly to the lead below. "
        "Keep the intent and call to action; do not invent facts.\n\n"
        f"Lead: {json.dumps(facts, default=str)}\n"
        f"Sender: {json.dumps(sender, default=str)}\n"
        f"Workflow step: {context.get('step_title', '')}\n\n"
        f"Subject:\n{context.get('subject', '')}\n\n"
        f"Body:\n{context.get('body', '')}"
    )


class ClaudeContentGenerator(ContentGenerator):
    """ContentGenerator backed by Claude. Raises on any failure."""

    def __init__(self, client: ClaudeClient):
        self._client = client

    async def generate_personalized(self, record: Lead, context: Dict[str, Any]) -> MessageContent:
        result = await self._client.ask_json(
            build_email_prompt(record, context),
            EMAIL_SCHEMA,
            tool_name="personalized_email",
            tool_description="Return the personalized email subject and body",
        )
        subject = str(result.get("subject") or "").strip()
        body = str(result.get("body") or "").strip()
        if not subject or not body:
            raise CollaboratorError("Claude returned an incomplete email")
        return MessageContent(subject=subject, body=body)


# ─── Singleton ─────────────────────────────────────────────────

_claude_client: Optional[ClaudeClient] = None


def get_claude_client() -> Optional[ClaudeClient]:
    """Shared client, or None when no API key is configured."""
    global _claude_client
    if _claude_client is None:
        client = ClaudeClient()
        if not client.is_configured:
            return None
        _claude_client = client
    return _claude_client


async def close_claude_client():
    global _claude_client
    if _claude_client is not None:
        await _claude_client.disconnect()
        _claude_client = None
