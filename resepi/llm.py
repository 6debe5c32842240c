"""Thin wrapper over the OpenAI chat API returning parsed JSON replies."""
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any

import openai
from flask import current_app

log = logging.getLogger(__name__)

COST_PER_1K_TOKENS = 0.0015
TIMEOUT = 60 * 2

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMResponseError(Exception):
    """The model answered with something that is not the JSON we asked for."""


@dataclass
class LLMResult:
    content: str
    data: Any
    total_tokens: int
    model: str
    raw: str


def get_client() -> openai.OpenAI:
    api_key = current_app.config.get("OPENAI_API_KEY")
    if not api_key:
        raise LLMResponseError("OPENAI_API_KEY is not configured")
    return openai.OpenAI(api_key=api_key, timeout=TIMEOUT)


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def estimate_cost(tokens: float | int | None) -> float:
    if tokens is None:
        return 0.0
    try:
        value = float(tokens)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value / 1000 * COST_PER_1K_TOKENS


def chat_json(system: str, user: str, model: str, temperature: float = 0) -> LLMResult:
    client = get_client()
    try:
        resp = client.chat.completions.create(
            model=model,
            temperature=temperature,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
    except openai.OpenAIError as e:
        log.error("OpenAI request failed model=%s: %s", model, e)
        raise LLMResponseError(str(e)) from e
    content = (resp.choices[0].message.content or "") if resp.choices else ""
    if not content:
        raise LLMResponseError("empty response from model")
    cleaned = strip_fences(content)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        log.warning("Model returned invalid JSON model=%s: %s", model, cleaned[:200])
        raise LLMResponseError("invalid JSON in model response") from e
    usage = getattr(resp, "usage", None)
    total = int(getattr(usage, "total_tokens", 0) or 0)
    return LLMResult(
        content=cleaned,
        data=data,
        total_tokens=total,
        model=getattr(resp, "model", None) or model,
        raw=content,
    )


__all__ = ["LLMResult", "LLMResponseError", "get_client", "chat_json", "estimate_cost", "strip_fences"]
