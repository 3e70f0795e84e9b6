# -*- coding: utf-8 -*-
"""Chat-completion providers (OpenAI-compatible HTTP API)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..errors import GenerationFailed
from .models import LLMProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSettings:
    provider: LLMProvider
    base_url: str
    model: str
    api_key: str
    timeout: float
    temperature: float
    max_tokens: int


def resolve_provider(value: LLMProvider | str | None, settings: Settings | None = None) -> LLMProvider:
    cfg = settings or default_settings
    raw = value if value is not None else cfg.llm_provider
    if isinstance(raw, LLMProvider):
        return raw
    try:
        return LLMProvider(str(raw).strip().lower())
    except ValueError as exc:
        raise GenerationFailed(f"Unknown LLM provider: {raw}", cause=exc) from exc


def resolve_provider_settings(
    provider: LLMProvider | str | None = None,
    settings: Settings | None = None,
) -> ProviderSettings:
    cfg = settings or default_settings
    selected = resolve_provider(provider, cfg)
    if selected is LLMProvider.openai:
        base_url, model, api_key = cfg.openai_base_url, cfg.openai_model, cfg.openai_api_key
    else:
        base_url, model, api_key = cfg.deepseek_base_url, cfg.deepseek_model, cfg.deepseek_api_key
    if not api_key:
        raise GenerationFailed(f"{selected.value} API key is not configured")
    return ProviderSettings(
        provider=selected,
        base_url=base_url.rstrip("/"),
        model=model,
        api_key=api_key,
        timeout=float(cfg.llm_timeout),
        temperature=float(cfg.llm_temperature),
        max_tokens=int(cfg.llm_max_tokens),
    )


def _completions_url(base_url: str) -> str:
    if base_url.endswith("/chat/completions"):
        return base_url
    return f"{base_url}/chat/completions"


def call_chat_completion(
    cfg: ProviderSettings,
    messages: List[Dict[str, str]],
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """Return the assistant message text; every failure surfaces as GenerationFailed."""
    payload = {
        "model": cfg.model,
        "messages": messages,
        "temperature": cfg.temperature,
        "max_tokens": cfg.max_tokens,
    }
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {cfg.api_key}",
    }
    try:
        with httpx.Client(timeout=cfg.timeout, transport=transport) as client:
            resp = client.post(_completions_url(cfg.base_url), headers=headers, json=payload)
            resp.raise_for_status()
            data: Dict[str, Any] = resp.json()
    except httpx.TimeoutException as exc:
        raise GenerationFailed(f"{cfg.provider.value} request timed out after {cfg.timeout}s", cause=exc) from exc
    except httpx.HTTPStatusError as exc:
        body = exc.response.text[:500]
        raise GenerationFailed(
            f"{cfg.provider.value} API error {exc.response.status_code}: {body}", cause=exc
        ) from exc
    except httpx.HTTPError as exc:
        raise GenerationFailed(f"{cfg.provider.value} API unreachable: {exc}", cause=exc) from exc
    except ValueError as exc:
        raise GenerationFailed(f"{cfg.provider.value} returned a non-JSON body", cause=exc) from exc

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise GenerationFailed(f"{cfg.provider.value} response has no message content", cause=exc) from exc
    if not isinstance(content, str) or not content.strip():
        raise GenerationFailed(f"{cfg.provider.value} returned an empty message")
    return content.strip()
