"""
OpenAI LLM helpers — shared by the guide updater.
"""

from __future__ import annotations

import logging
import re
import time

from openai import OpenAI, RateLimitError

import config

log = logging.getLogger(__name__)

_client: OpenAI | None = None


def get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=config.OPENAI_API_KEY)
    return _client


MAX_RETRIES = 5
BASE_DELAY = 10  # seconds

NO_CHANGES = "NO-CHANGES"

_FENCE_RE = re.compile(r"^```[\w-]*\n(.*?)\n?```\s*$", re.DOTALL)


def chat(
    system: str,
    user: str,
    model: str | None = None,
    temperature: float = 0.2,
    max_tokens: int = 8192,
) -> str:
    """Send a chat completion request and return the assistant message.

    Retries up to MAX_RETRIES times on rate limit (429) errors with
    exponential backoff. Other API errors propagate.
    """
    client = get_client()
    kwargs: dict = {
        "model": model or config.OPENAI_MODEL,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    for attempt in range(MAX_RETRIES):
        try:
            resp = client.chat.completions.create(**kwargs)
            return resp.choices[0].message.content or ""
        except RateLimitError as e:
            delay = BASE_DELAY * (2 ** attempt)
            log.warning(
                "Rate limited (attempt %d/%d), retrying in %ds: %s",
                attempt + 1, MAX_RETRIES, delay, e,
            )
            if attempt == MAX_RETRIES - 1:
                raise
            time.sleep(delay)

    return ""


def is_no_changes(reply: str) -> bool:
    """True when the model declined to edit."""
    head = reply.strip().strip("`").strip().upper()
    return head.startswith(NO_CHANGES) or head.startswith("NO CHANGES")


def strip_fences(reply: str) -> str:
    """Unwrap a reply that arrived inside a single fenced code block."""
    text = reply.strip()
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text
