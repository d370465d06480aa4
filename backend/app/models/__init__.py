from app.models.user import User, UserRole
from app.models.package import AnswerOption, QuizPackage, QuizQuestion
from app.models.attempt import AttemptStatus, QuizAnswer, QuizAttempt
from app.models.security_audit import SecurityAuditEvent

__all__ = [
    "User",
    "UserRole",
    "AnswerOption",
    "QuizPackage",
    "QuizQuestion",
    "AttemptStatus",
    "QuizAttempt",
    "QuizAnswer",
    "SecurityAuditEvent",
]
