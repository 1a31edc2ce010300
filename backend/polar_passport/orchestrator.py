from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Literal, Protocol

from polar_passport.brief import PassportBrief
from polar_passport.config import Settings
from polar_passport.draft import NormalizedDraft
from polar_passport.model_runtime import ModelRuntimeError
from polar_passport.normalizer import normalize_with_report

logger = logging.getLogger("polar_passport.orchestrator")

GenerationMode = Literal["llm", "fallback", "local"]


class UpstreamUnavailableError(RuntimeError):
    """Raised when the model call fails and the failure policy is ``abort``."""


class PassportModel(Protocol):
    @property
    def is_configured(self) -> bool: ...

    @property
    def model_label(self) -> str: ...

    def generate_passport(self, brief: PassportBrief) -> str: ...


@dataclass(frozen=True)
class GenerationResult:
    draft: NormalizedDraft
    mode: GenerationMode
    model: str | None
    report: dict[str, object] = field(default_factory=dict)


class PassportOrchestrator:
    """One model call per request, then normalization over the fallback draft.

    No retries. When the call fails the request either degrades to the
    fallback draft or aborts, depending on ``upstream_failure_mode``.
    """

    def __init__(self, settings: Settings, model_client: PassportModel) -> None:
        self._settings = settings
        self._model_client = model_client

    def generate(self, brief: PassportBrief) -> GenerationResult:
        started = time.perf_counter()
        raw: str | None = None
        mode: GenerationMode
        model: str | None = None

        if not self._model_client.is_configured:
            mode = "local"
        else:
            model = self._model_client.model_label
            try:
                raw = self._model_client.generate_passport(brief)
                mode = "llm"
            except ModelRuntimeError as exc:
                if self._settings.abort_on_upstream_failure:
                    raise UpstreamUnavailableError(str(exc)) from exc
                logger.warning(
                    "passport_generation_degraded",
                    extra={
                        "event": "passport_generation_degraded",
                        "model_id": model,
                        "error": str(exc),
                    },
                )
                mode = "fallback"

        draft, report = normalize_with_report(raw, brief)
        logger.info(
            "passport_generated",
            extra={
                "event": "passport_generated",
                "mode": mode,
                "model_id": model,
                "category": draft.header.category,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "normalization": report,
            },
        )
        return GenerationResult(draft=draft, mode=mode, model=model, report=report)
