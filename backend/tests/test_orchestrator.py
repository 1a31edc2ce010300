from __future__ import annotations

import logging

import pytest

from polar_passport.brief import PassportBrief
from polar_passport.config import Settings
from polar_passport.fallback import build_fallback_draft
from polar_passport.model_runtime import ModelRuntimeError
from polar_passport.orchestrator import PassportOrchestrator, UpstreamUnavailableError

BRIEF = PassportBrief(category="Паштет", pain="тяжёлый продукт")


class FakeModelClient:
    def __init__(self, raw: str | None = None, error: Exception | None = None, configured: bool = True) -> None:
        self.raw = raw
        self.error = error
        self.is_configured = configured
        self.model_label = "fake-model"
        self.calls: list[PassportBrief] = []

    def generate_passport(self, brief: PassportBrief) -> str:
        self.calls.append(brief)
        if self.error is not None:
            raise self.error
        return self.raw or ""


def test_model_answer_is_normalized() -> None:
    model = FakeModelClient(raw='{"header": {"name": "Печёночный"}, "blocks": {"cognitive": ["a", "b"]}}')

    result = PassportOrchestrator(Settings(), model).generate(BRIEF)

    assert result.mode == "llm"
    assert result.model == "fake-model"
    assert result.draft.header.name == "Печёночный"
    assert result.report["rows_from_model"] == 2
    assert model.calls == [BRIEF]


def test_upstream_failure_degrades_to_fallback_by_default() -> None:
    model = FakeModelClient(error=ModelRuntimeError("timeout"))

    result = PassportOrchestrator(Settings(upstream_failure_mode="degrade"), model).generate(BRIEF)

    assert result.mode == "fallback"
    assert result.draft == build_fallback_draft(BRIEF)
    assert result.report["parsed"] is False


def test_upstream_failure_aborts_when_configured() -> None:
    model = FakeModelClient(error=ModelRuntimeError("HTTP 503"))

    with pytest.raises(UpstreamUnavailableError, match="HTTP 503"):
        PassportOrchestrator(Settings(upstream_failure_mode="abort"), model).generate(BRIEF)


def test_unconfigured_model_generates_locally() -> None:
    model = FakeModelClient(configured=False)

    result = PassportOrchestrator(Settings(), model).generate(BRIEF)

    assert result.mode == "local"
    assert result.model is None
    assert model.calls == []
    assert result.draft == build_fallback_draft(BRIEF)


def test_generation_is_logged_with_report(caplog: pytest.LogCaptureFixture) -> None:
    model = FakeModelClient(raw="{}")

    with caplog.at_level(logging.INFO, logger="polar_passport.orchestrator"):
        PassportOrchestrator(Settings(), model).generate(BRIEF)

    generated = [record for record in caplog.records if getattr(record, "event", None) == "passport_generated"]
    assert generated
    assert generated[-1].mode == "llm"
    assert generated[-1].normalization["parsed"] is True
