from pydantic import BaseModel, Field, field_validator

from polar_passport.brief import PassportBrief


class GenerateRequest(PassportBrief):
    project_id: str | None = None

    @field_validator("category")
    @classmethod
    def require_category(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("category is required")
        return value


class PainsRequest(PassportBrief):
    pass


class ProjectCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=160)
    category: str = Field(default="", max_length=160)


class SendToTelegramRequest(BaseModel):
    draft: dict[str, object] | None = None
    project_id: str | None = None
    chat_id: str | int | None = None
