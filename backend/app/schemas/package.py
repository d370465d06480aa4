from __future__ import annotations

from pydantic import BaseModel, Field

from app.models.package import AnswerOption


class PackageCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None


class PackageUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None


class PackagePublic(BaseModel):
    id: str
    title: str
    description: str | None
    created_by: str
    created_at: str
    updated_at: str
    question_count: int


class PackagesListResponse(BaseModel):
    items: list[PackagePublic]


class QuestionCreateRequest(BaseModel):
    package_id: str
    question_text: str = Field(min_length=1)
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)
    option_c: str = Field(min_length=1)
    option_d: str = Field(min_length=1)
    option_e: str = Field(min_length=1)
    correct_answer: AnswerOption
    order_index: int = Field(ge=0)


class QuestionUpdateRequest(BaseModel):
    question_text: str | None = Field(default=None, min_length=1)
    option_a: str | None = Field(default=None, min_length=1)
    option_b: str | None = Field(default=None, min_length=1)
    option_c: str | None = Field(default=None, min_length=1)
    option_d: str | None = Field(default=None, min_length=1)
    option_e: str | None = Field(default=None, min_length=1)
    correct_answer: AnswerOption | None = None
    order_index: int | None = Field(default=None, ge=0)


class QuestionPublic(BaseModel):
    id: str
    package_id: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    option_e: str
    # Only populated for admins.
    correct_answer: str | None = None
    order_index: int


class QuestionsListResponse(BaseModel):
    items: list[QuestionPublic]
