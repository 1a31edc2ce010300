from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from polar_passport.schema import BLOCKS, block_keys


class AnswerRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class DraftHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    audience: str = Field(..., min_length=1)
    pain: str = Field(..., min_length=1)
    innovation: str = Field(..., min_length=1)


class NormalizedDraft(BaseModel):
    """Complete product passport: header, four 5-row blocks, notes and conclusion."""

    model_config = ConfigDict(frozen=True)

    header: DraftHeader
    blocks: dict[str, list[AnswerRow]]
    tech_notes: list[str] = Field(..., min_length=1)
    star_notes: list[str] = Field(..., min_length=1)
    conclusion: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_schema_shape(self) -> "NormalizedDraft":
        if tuple(self.blocks.keys()) != block_keys():
            raise ValueError(f"blocks must be exactly {list(block_keys())} in order")
        for block in BLOCKS:
            rows = self.blocks[block.key]
            expected = [(question.code, question.text) for question in block.questions]
            if [(row.code, row.question) for row in rows] != expected:
                raise ValueError(f"block '{block.key}' rows do not match the passport schema")
        if any(not item.strip() for item in [*self.tech_notes, *self.star_notes]):
            raise ValueError("note items must be non-empty")
        return self

    def rows(self, block_key: str) -> list[AnswerRow]:
        return self.blocks[block_key]

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json")
