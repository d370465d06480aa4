from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import remaining_seconds, utcnow
from app.core.errors import InvalidStateError, NotFoundError
from app.models.attempt import AttemptStatus, QuizAnswer, QuizAttempt
from app.models.package import AnswerOption, QuizPackage, QuizQuestion
from app.schemas.attempt import AttemptSnapshot, CurrentQuestion, ResultSummary
from app.services.packages import count_questions, get_question_at, parse_uuid
from app.services.results import build_result


log = logging.getLogger(__name__)

REQUIRED_QUESTION_COUNT = 110
TIME_BUDGET_SECONDS = 120 * 60
OPTION_SET = frozenset(o.value for o in AnswerOption)

TERMINAL_STATUSES = frozenset({AttemptStatus.COMPLETED, AttemptStatus.TIME_OUT})

_ATTEMPT_NOT_FOUND = "quiz attempt not found"


def public_question(q: QuizQuestion | None) -> CurrentQuestion | None:
    if q is None:
        return None
    return CurrentQuestion(
        id=str(q.id),
        package_id=str(q.package_id),
        question_text=q.question_text,
        option_a=q.option_a,
        option_b=q.option_b,
        option_c=q.option_c,
        option_d=q.option_d,
        option_e=q.option_e,
        order_index=int(q.order_index),
    )


class AttemptService:
    """Lifecycle of a single timed attempt: start, answer, time out, complete.

    Every mutation of an attempt row is a conditional UPDATE keyed on the
    status and pointer that were read, so two racing writers cannot both
    advance the same attempt. Expiry is lazy: it is only noticed when a
    snapshot read or an answer submission arrives after the deadline.
    """

    def __init__(
        self,
        db: Session,
        *,
        clock: Callable[[], datetime] = utcnow,
        required_question_count: int = REQUIRED_QUESTION_COUNT,
        time_budget_seconds: int = TIME_BUDGET_SECONDS,
    ):
        self.db = db
        self.clock = clock
        self.required_question_count = int(required_question_count)
        self.time_budget_seconds = int(time_budget_seconds)

    def start_attempt(self, package_id: uuid.UUID, user_id: uuid.UUID) -> AttemptSnapshot:
        package_id, user_id = parse_uuid(package_id), parse_uuid(user_id)
        package = None
        if package_id is not None:
            package = self.db.scalar(select(QuizPackage).where(QuizPackage.id == package_id))
        if package is None:
            raise NotFoundError("quiz package not found")

        found = count_questions(self.db, package.id)
        if found != self.required_question_count:
            raise InvalidStateError(
                f"quiz package must have exactly {self.required_question_count} questions, found {found}"
            )

        attempt = self._find_in_progress(user_id=user_id, package_id=package.id)
        if attempt is not None:
            log.info("attempt resumed id=%s user=%s package=%s", attempt.id, user_id, package.id)
            return self._snapshot(attempt, package, time_remaining=attempt.time_remaining_seconds)

        now = self.clock()
        attempt = QuizAttempt(
            user_id=user_id,
            package_id=package.id,
            status=AttemptStatus.IN_PROGRESS,
            score=0,
            total_questions=found,
            current_question_index=0,
            started_at=now,
            completed_at=None,
            time_remaining_seconds=self.time_budget_seconds,
            created_at=now,
            updated_at=now,
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost the race against a concurrent start; the unique partial index kept one row.
            self.db.rollback()
            attempt = self._find_in_progress(user_id=user_id, package_id=package.id)
            if attempt is None:
                raise
            log.info("attempt resumed after concurrent start id=%s user=%s", attempt.id, user_id)
            return self._snapshot(attempt, package, time_remaining=attempt.time_remaining_seconds)

        self.db.refresh(attempt)
        log.info("attempt started id=%s user=%s package=%s", attempt.id, user_id, package.id)
        return self._snapshot(attempt, package, time_remaining=attempt.time_remaining_seconds)

    def get_snapshot(self, attempt_id: uuid.UUID, user_id: uuid.UUID) -> AttemptSnapshot | None:
        """Live view of an attempt, or None when it is missing or finished.

        Reading an attempt whose time has run out moves it to TIME_OUT and
        returns None; the caller should then look at the result.
        """
        attempt = self._load(attempt_id)
        if attempt is None or attempt.status in TERMINAL_STATUSES:
            return None
        if attempt.user_id != parse_uuid(user_id):
            return None

        now = self.clock()
        actual = self.current_remaining(attempt, now)
        if actual == 0:
            self.expire(attempt, now)
            return None

        package = self.db.scalar(select(QuizPackage).where(QuizPackage.id == attempt.package_id))
        return self._snapshot(attempt, package, time_remaining=actual)

    def submit_answer(
        self,
        attempt_id: uuid.UUID,
        question_id: uuid.UUID,
        selected_answer: AnswerOption | str,
        user_id: uuid.UUID,
    ) -> AttemptSnapshot:
        attempt = self._load(attempt_id)
        if (
            attempt is None
            or attempt.user_id != parse_uuid(user_id)
            or attempt.status != AttemptStatus.IN_PROGRESS
        ):
            raise NotFoundError(_ATTEMPT_NOT_FOUND)

        try:
            selected = AnswerOption(getattr(selected_answer, "value", selected_answer))
        except ValueError as e:
            raise InvalidStateError(f"selected answer must be one of {', '.join(sorted(OPTION_SET))}") from e

        if count_questions(self.db, attempt.package_id) <= 0:
            raise InvalidStateError("no questions found for this quiz package")

        current = get_question_at(self.db, attempt.package_id, attempt.current_question_index)
        if current is None or current.id != parse_uuid(question_id):
            raise InvalidStateError("question id does not match the current question")

        is_correct = selected == current.correct_answer
        now = self.clock()

        read_index = int(attempt.current_question_index)
        next_index = read_index + 1
        new_score = int(attempt.score or 0) + (1 if is_correct else 0)
        is_last = next_index >= int(attempt.total_questions)
        actual = remaining_seconds(self.time_budget_seconds, attempt.started_at, now)

        values: dict[str, object] = {
            "score": new_score,
            "current_question_index": next_index,
            "time_remaining_seconds": actual,
            "updated_at": now,
        }
        final_status: AttemptStatus | None = None
        if is_last or actual == 0:
            final_status = AttemptStatus.TIME_OUT if actual == 0 else AttemptStatus.COMPLETED
            values["status"] = final_status
            values["completed_at"] = now

        self.db.add(
            QuizAnswer(
                attempt_id=attempt.id,
                question_id=current.id,
                selected_answer=selected,
                is_correct=is_correct,
                answered_at=now,
            )
        )
        res = self.db.execute(
            update(QuizAttempt)
            .where(
                QuizAttempt.id == attempt.id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS,
                QuizAttempt.current_question_index == read_index,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            self.db.rollback()
            raise InvalidStateError("attempt was modified concurrently, fetch the current state and retry")
        self.db.commit()
        self.db.refresh(attempt)

        if final_status is not None:
            log.info(
                "attempt finished id=%s status=%s score=%s/%s",
                attempt.id,
                final_status.value,
                new_score,
                attempt.total_questions,
            )

        package = self.db.scalar(select(QuizPackage).where(QuizPackage.id == attempt.package_id))
        return self._snapshot(
            attempt,
            package,
            time_remaining=actual,
            with_question=final_status is None,
        )

    def complete_attempt(self, attempt_id: uuid.UUID, user_id: uuid.UUID) -> ResultSummary:
        attempt = self._load(attempt_id)
        if attempt is None or attempt.user_id != parse_uuid(user_id):
            raise NotFoundError("quiz attempt not found or does not belong to user")

        if attempt.status in TERMINAL_STATUSES:
            return build_result(self.db, attempt)

        now = self.clock()
        # The ledger is the source of truth for the final score, not the running counter.
        score = int(
            self.db.scalar(
                select(func.count(QuizAnswer.id)).where(
                    QuizAnswer.attempt_id == attempt.id,
                    QuizAnswer.is_correct.is_(True),
                )
            )
            or 0
        )
        res = self.db.execute(
            update(QuizAttempt)
            .where(QuizAttempt.id == attempt.id, QuizAttempt.status == AttemptStatus.IN_PROGRESS)
            .values(status=AttemptStatus.COMPLETED, completed_at=now, score=score, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            # Someone else finalized it in between; report what they stored.
            self.db.rollback()
        else:
            self.db.commit()
            log.info("attempt completed id=%s score=%s/%s", attempt.id, score, attempt.total_questions)

        self.db.refresh(attempt)
        return build_result(self.db, attempt)

    def current_remaining(self, attempt: QuizAttempt, now: datetime) -> int:
        """Seconds left on the attempt's clock as of `now`.

        Always derived from `started_at` and the fixed budget, so it never
        depends on ledger rows that an admin may later delete.
        """
        return remaining_seconds(self.time_budget_seconds, attempt.started_at, now)

    def expire(self, attempt: QuizAttempt, now: datetime) -> bool:
        res = self.db.execute(
            update(QuizAttempt)
            .where(QuizAttempt.id == attempt.id, QuizAttempt.status == AttemptStatus.IN_PROGRESS)
            .values(status=AttemptStatus.TIME_OUT, completed_at=now, time_remaining_seconds=0, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(attempt)
        if res.rowcount == 1:
            log.info("attempt timed out id=%s user=%s", attempt.id, attempt.user_id)
            return True
        return False

    def _load(self, attempt_id) -> QuizAttempt | None:
        aid = parse_uuid(attempt_id)
        if aid is None:
            return None
        return self.db.scalar(select(QuizAttempt).where(QuizAttempt.id == aid))

    def _find_in_progress(self, *, user_id: uuid.UUID, package_id: uuid.UUID) -> QuizAttempt | None:
        return self.db.scalar(
            select(QuizAttempt)
            .where(
                QuizAttempt.user_id == user_id,
                QuizAttempt.package_id == package_id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS,
            )
            .order_by(QuizAttempt.started_at.desc())
            .limit(1)
        )

    def _snapshot(
        self,
        attempt: QuizAttempt,
        package: QuizPackage | None,
        *,
        time_remaining: int,
        with_question: bool = True,
    ) -> AttemptSnapshot:
        question = None
        if with_question:
            question = get_question_at(self.db, attempt.package_id, attempt.current_question_index)
        return AttemptSnapshot(
            attempt_id=str(attempt.id),
            package_id=str(attempt.package_id),
            quiz_title=package.title if package is not None else "",
            current_question_index=int(attempt.current_question_index),
            total_questions=int(attempt.total_questions),
            time_remaining_seconds=int(time_remaining),
            current_question=public_question(question),
        )
