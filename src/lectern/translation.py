"""HTTP client that translates a page's text through a chat-completions server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from requests.exceptions import ConnectionError, RequestException, Timeout

LOGGER = logging.getLogger(__name__)

PROMPT = (
    "Translate the following text to {language}. Return the result as simple "
    "HTML snippets (e.g. <p>, <strong>) suitable for rendering inside a div. "
    "Do not use markdown code blocks. Keep the tone and formatting close to "
    "the original.\n\nText:\n{text}"
)


class TranslationError(Exception):
    """Raised when the translation server rejects or fails a request."""


@dataclass
class Translation:
    text: str
    raw: Dict


class TranslationClient:
    """Small wrapper around an OpenAI-compatible `/v1/chat/completions` endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key if api_key is not None else os.environ.get("LECTERN_API_KEY")
        self.timeout = timeout
        self._session = session or requests.Session()

    def translate(self, text: str, language: str = "Portuguese (Brazil)") -> Translation:
        """Translate text. Blank text is returned as-is without a request."""
        if not text.strip():
            return Translation(text="", raw={})

        payload: Dict[str, object] = {
            "messages": [
                {"role": "user", "content": PROMPT.format(language=language, text=text)}
            ],
        }
        if self.model:
            payload["model"] = self.model

        data = self._post("/v1/chat/completions", payload)
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise TranslationError(f"Malformed response: {exc}") from exc
        LOGGER.info("Translated %d characters to %s", len(text), language)
        return Translation(text=content, raw=data)

    def _post(self, endpoint: str, payload: Dict) -> Dict:
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except Timeout as exc:
            raise TranslationError("Request timed out") from exc
        except ConnectionError as exc:
            raise TranslationError(f"Cannot connect to {self.base_url}") from exc
        except RequestException as exc:
            raise TranslationError(f"Request failed: {exc}") from exc

        if response.status_code >= 400:
            raise TranslationError(f"Request error ({response.status_code}): {response.text}")
        try:
            return response.json()
        except ValueError as exc:
            raise TranslationError(f"Response is not JSON: {exc}") from exc
