from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from polar_passport.brief import PassportBrief
from polar_passport.config import Settings
from polar_passport.prompts import (
    MAX_PAINS,
    pains_system_prompt,
    pains_user_prompt,
    passport_system_prompt,
    passport_user_prompt,
)
from polar_passport.raw_output import (
    RawMapping,
    RawScalar,
    RawSequence,
    classify,
    decode_json_text,
    sanitize_text,
    split_text_list,
)

logger = logging.getLogger("polar_passport.model")

SUPPORTED_PROVIDERS = ("openai", "bedrock")


class ModelRuntimeError(RuntimeError):
    """Raised when the model call fails or returns no usable content."""


def clean_pain_list(items: list[str], *, limit: int = MAX_PAINS) -> list[str]:
    cleaned: list[str] = []
    seen: set[str] = set()
    for item in items:
        text = sanitize_text(item)
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        cleaned.append(text)
        if len(cleaned) >= limit:
            break
    return cleaned


def extract_pains(text: str) -> list[str]:
    decoded = classify(decode_json_text(text))
    if isinstance(decoded, RawMapping):
        decoded = decoded.get("pains")
    if isinstance(decoded, RawSequence):
        return clean_pain_list([sanitize_text(item) for item in decoded.items])
    if isinstance(decoded, RawScalar) and isinstance(decoded.value, str):
        return clean_pain_list(split_text_list(decoded.value))
    return []


class PassportModelClient:
    def __init__(
        self,
        settings: Settings,
        http_client: httpx.Client | None = None,
        bedrock_client: Any | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._bedrock_client = bedrock_client

    @property
    def provider(self) -> str:
        return self._settings.model_provider.strip().lower()

    @property
    def model_label(self) -> str:
        if self.provider == "bedrock":
            return self._settings.bedrock_model_id
        return self._settings.model_name

    @property
    def is_configured(self) -> bool:
        if self.provider == "bedrock":
            return bool(self._settings.bedrock_model_id)
        if self.provider == "openai":
            return bool(self._settings.model_api_key and self._settings.model_api_url and self._settings.model_name)
        return False

    def _temperature_for(self, brief: PassportBrief) -> float:
        if brief.temperature is not None:
            return brief.temperature
        return self._settings.model_temperature

    def generate_passport(self, brief: PassportBrief) -> str:
        return self._complete(
            passport_system_prompt(),
            passport_user_prompt(brief),
            temperature=self._temperature_for(brief),
            purpose="passport",
        )

    def generate_pains(self, brief: PassportBrief) -> list[str]:
        text = self._complete(
            pains_system_prompt(),
            pains_user_prompt(brief),
            temperature=self._temperature_for(brief),
            purpose="pains",
        )
        pains = extract_pains(text)
        if not pains:
            raise ModelRuntimeError("Model response did not include any consumer pains.")
        return pains

    def _complete(self, system_prompt: str, user_prompt: str, *, temperature: float, purpose: str) -> str:
        started = time.perf_counter()
        try:
            if self.provider == "openai":
                text = self._invoke_openai(system_prompt, user_prompt, temperature)
            elif self.provider == "bedrock":
                text = self._invoke_bedrock(system_prompt, user_prompt, temperature)
            else:
                raise ModelRuntimeError(
                    f"Unsupported MODEL_PROVIDER '{self.provider}'; expected one of {', '.join(SUPPORTED_PROVIDERS)}."
                )
        except ModelRuntimeError as exc:
            logger.warning(
                "model_invoke_failed",
                extra={
                    "event": "model_invoke_failed",
                    "provider": self.provider,
                    "model_id": self.model_label,
                    "purpose": purpose,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "error": str(exc),
                },
            )
            raise

        logger.info(
            "model_invoke_completed",
            extra={
                "event": "model_invoke_completed",
                "provider": self.provider,
                "model_id": self.model_label,
                "purpose": purpose,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "system_prompt_chars": len(system_prompt),
                "user_prompt_chars": len(user_prompt),
                "response_chars": len(text),
            },
        )
        return text

    def _invoke_openai(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        if not self._settings.model_api_key:
            raise ModelRuntimeError("MODEL_API_KEY is not configured.")
        if not self._settings.model_api_url or not self._settings.model_name:
            raise ModelRuntimeError("MODEL_API_URL and MODEL_NAME must be configured.")

        payload = {
            "model": self._settings.model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": self._settings.model_max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self._settings.model_api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._post(self._settings.model_api_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ModelRuntimeError(f"Model request failed: {exc.__class__.__name__}: {exc}") from exc

        if not response.is_success:
            raise ModelRuntimeError(f"Model endpoint returned HTTP {response.status_code}: {response.text[:300]}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ModelRuntimeError("Model endpoint returned a non-JSON body.") from exc
        return self._extract_openai_text(data)

    def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return self._http_client.post(url, timeout=self._settings.model_timeout_seconds, **kwargs)
        with httpx.Client(timeout=self._settings.model_timeout_seconds) as client:
            return client.post(url, **kwargs)

    @staticmethod
    def _extract_openai_text(data: Any) -> str:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ModelRuntimeError("Model response did not include any choices.")
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, list):
            parts = [part.get("text", "") for part in content if isinstance(part, dict)]
            content = "\n".join(part for part in parts if isinstance(part, str))
        if not isinstance(content, str) or not content.strip():
            raise ModelRuntimeError("Model response did not include textual output.")
        return content.strip()

    def _bedrock(self) -> Any:
        if self._bedrock_client is None:
            try:
                import boto3  # type: ignore
            except ImportError as exc:
                raise ModelRuntimeError("boto3 is required for the Bedrock model provider.") from exc

            self._bedrock_client = boto3.client("bedrock-runtime", region_name=self._settings.aws_region)
        return self._bedrock_client

    def _invoke_bedrock(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        model_id = self._settings.bedrock_model_id
        if not model_id:
            raise ModelRuntimeError("Bedrock model ID is not configured.")
        try:
            response = self._bedrock().converse(
                modelId=model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig={
                    "temperature": temperature,
                    "maxTokens": self._settings.model_max_tokens,
                },
            )
        except Exception as exc:  # botocore client and transport errors
            raise ModelRuntimeError(f"Bedrock invocation failed for model '{model_id}': {exc}") from exc
        return self._extract_bedrock_text(response)

    @staticmethod
    def _extract_bedrock_text(response: Any) -> str:
        outputs = response.get("output", {}).get("message", {}).get("content", [])
        parts: list[str] = []
        for item in outputs:
            text = item.get("text")
            if isinstance(text, str) and text.strip():
                parts.append(text)
        if not parts:
            raise ModelRuntimeError("Bedrock response did not include textual output.")
        return "\n".join(parts).strip()
