from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx

from polar_passport.config import Settings
from polar_passport.draft import NormalizedDraft
from polar_passport.export.naming import DOCX_MEDIA_TYPE

logger = logging.getLogger("polar_passport.delivery")

_MARKDOWN_SPECIAL_CHARS = re.compile(r"([_*`\[])")


class DeliveryError(RuntimeError):
    """Raised when the passport cannot be delivered to Telegram."""


def escape_markdown(value: str) -> str:
    return _MARKDOWN_SPECIAL_CHARS.sub(r"\\\1", value)


def compose_brief_markdown(draft: NormalizedDraft) -> str:
    header = draft.header
    lines = [
        f"*{escape_markdown(header.name)}*",
        f"Категория: {escape_markdown(header.category)}",
        f"ЦА: {escape_markdown(header.audience)}",
        f"Боль: {escape_markdown(header.pain)}",
        f"Уникальность: {escape_markdown(header.innovation)}",
    ]
    return "\n".join(lines)


class TelegramDispatcher:
    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.telegram_bot_token)

    def send_passport(
        self,
        chat_id: str | int,
        draft: NormalizedDraft,
        document: bytes,
        filename: str,
    ) -> None:
        started = time.perf_counter()
        self._request(
            "sendMessage",
            data={"chat_id": str(chat_id), "text": compose_brief_markdown(draft), "parse_mode": "Markdown"},
        )
        self._request(
            "sendDocument",
            data={"chat_id": str(chat_id)},
            files={"document": (filename, document, DOCX_MEDIA_TYPE)},
        )
        logger.info(
            "passport_delivered",
            extra={
                "event": "passport_delivered",
                "chat_id": str(chat_id),
                "document_bytes": len(document),
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )

    def _request(self, method: str, **kwargs: Any) -> dict[str, object]:
        if not self._settings.telegram_bot_token:
            raise DeliveryError("TELEGRAM_BOT_TOKEN is not configured.")

        url = f"{self._settings.telegram_api_base.rstrip('/')}/bot{self._settings.telegram_bot_token}/{method}"
        try:
            response = self._post(url, **kwargs)
        except httpx.HTTPError as exc:
            # httpx puts the request URL, and with it the bot token, into some error messages.
            logger.warning(
                "telegram_request_failed",
                extra={"event": "telegram_request_failed", "method": method, "error": exc.__class__.__name__},
            )
            raise DeliveryError(f"Telegram {method} request failed: {exc.__class__.__name__}") from exc

        if not response.is_success:
            logger.warning(
                "telegram_request_failed",
                extra={
                    "event": "telegram_request_failed",
                    "method": method,
                    "status_code": response.status_code,
                    "body": response.text[:300],
                },
            )
            raise DeliveryError(f"Telegram API error {response.status_code} on {method}.")
        try:
            payload = response.json()
        except ValueError as exc:
            raise DeliveryError(f"Telegram {method} returned a non-JSON body.") from exc
        if not isinstance(payload, dict) or payload.get("ok") is False:
            raise DeliveryError(f"Telegram {method} was not accepted.")
        return payload

    def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return self._client.post(url, timeout=self._settings.telegram_timeout_seconds, **kwargs)
        with httpx.Client(timeout=self._settings.telegram_timeout_seconds) as client:
            return client.post(url, **kwargs)
