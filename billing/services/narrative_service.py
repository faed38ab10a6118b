"""
Narrative Service - turns a terse time-entry note into a client-ready
billing narrative through an OpenAI-compatible chat-completions endpoint.

Enhancement is best effort: when it is disabled, misconfigured, slow or
failing, the raw description is returned unchanged and the entry is still
recorded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a legal billing specialist. Convert the brief time entry description "
    "into a professional, detailed billing narrative suitable for client invoices. "
    "Be specific and use proper legal terminology."
)

MAX_NARRATIVE_LENGTH = 4000


class NarrativeEnhancer:
    def __init__(self, api_url: str = None, api_key: str = None, model: str = None,
                 timeout: int = None, enabled: bool = None):
        self.api_url = api_url or getattr(settings, "NARRATIVE_API_URL", "")
        self.api_key = api_key if api_key is not None else getattr(settings, "NARRATIVE_API_KEY", "")
        self.model = model or getattr(settings, "NARRATIVE_MODEL", "gpt-4o-mini")
        self.timeout = timeout or getattr(settings, "EXTERNAL_CALL_TIMEOUT", 10)
        self.enabled = enabled if enabled is not None else getattr(settings, "NARRATIVE_ENHANCEMENT_ENABLED", False)

    @property
    def is_configured(self) -> bool:
        return bool(self.enabled and self.api_url and self.api_key)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def enhance(self, text: str, duration_minutes: int) -> str:
        if not self.is_configured:
            return text

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Time entry: {text} ({duration_minutes} minutes)"},
            ],
        }

        try:
            response = requests.post(self.api_url, headers=self.headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Narrative enhancement unavailable, keeping raw description: {e}")
            return text
        except ValueError:
            logger.warning("Narrative enhancement returned invalid JSON, keeping raw description")
            return text

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Narrative enhancement response had no message content")
            return text

        if not isinstance(content, str) or not content.strip():
            return text
        return content.strip()[:MAX_NARRATIVE_LENGTH]
