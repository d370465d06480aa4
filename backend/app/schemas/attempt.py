from __future__ import annotations

from pydantic import BaseModel

from app.models.package import AnswerOption


class CurrentQuestion(BaseModel):
    """Question as shown to the taker: the answer key is never part of it."""

    id: str
    package_id: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    option_e: str
    order_index: int


class AttemptSnapshot(BaseModel):
    attempt_id: str
    package_id: str
    quiz_title: str
    current_question_index: int
    total_questions: int
    time_remaining_seconds: int
    current_question: CurrentQuestion | None = None


class StartAttemptRequest(BaseModel):
    package_id: str


class SubmitAnswerRequest(BaseModel):
    question_id: str
    selected_answer: AnswerOption


class ResultAnswer(BaseModel):
    question_id: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    option_e: str
    selected_answer: str
    correct_answer: str
    is_correct: bool


class ResultSummary(BaseModel):
    attempt_id: str
    score: int
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    time_taken_seconds: int
    completed_at: str | None
    answers: list[ResultAnswer]


class AttemptHistoryItem(BaseModel):
    attempt_id: str
    package_id: str
    quiz_title: str | None = None
    status: str
    score: int
    total_questions: int
    current_question_index: int
    time_remaining_seconds: int
    started_at: str
    completed_at: str | None


class AttemptHistoryResponse(BaseModel):
    items: list[AttemptHistoryItem]
