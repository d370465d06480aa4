from __future__ import annotations

import argparse
import json
import os
import pathlib
import sys

# Force /app into path for Docker compatibility
sys.path.append("/app")
# Also add current directory as fallback
sys.path.append(os.getcwd())

from sqlalchemy import select

from app.core.errors import QuizError
from app.core.security import hash_password
from app.db.session import SessionLocal
from app.models.package import AnswerOption, QuizPackage
from app.models.user import User, UserRole
from app.services import packages as package_service


def ensure_user(db, *, email: str, password: str, role: UserRole) -> User:
    email = email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if user is not None:
        return user
    user = User(email=email, role=role, password_hash=hash_password(password))
    db.add(user)
    db.flush()
    return user


def load_package_file(path: pathlib.Path) -> dict:
    """Read a package file: {"title", "description"?, "questions": [...]}.

    Each question carries question_text, option_a..option_e and correct_answer.
    Its position in the list becomes its order_index.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not str(data.get("title") or "").strip():
        raise ValueError("package file must be an object with a non-empty title")

    questions = data.get("questions")
    if not isinstance(questions, list):
        raise ValueError("package file must contain a questions list")

    for i, q in enumerate(questions):
        for field in ("question_text", "option_a", "option_b", "option_c", "option_d", "option_e"):
            if not str((q or {}).get(field) or "").strip():
                raise ValueError(f"question {i}: {field} is required")
        AnswerOption(str(q.get("correct_answer") or "").strip().upper())
    return data


def main() -> None:
    parser = argparse.ArgumentParser(description="Import a quiz package from a JSON file")
    parser.add_argument("path", help="JSON package file")
    parser.add_argument("--replace", action="store_true", help="delete an existing package with the same title first")
    parser.add_argument("--admin-email", default=os.environ.get("QUIZBANK_SEED_ADMIN_EMAIL", "admin@example.com"))
    parser.add_argument("--admin-password", default=os.environ.get("QUIZBANK_SEED_ADMIN_PASSWORD", "admin123"))
    args = parser.parse_args()

    path = pathlib.Path(args.path)
    if not path.is_file():
        print(f"File not found: {path}")
        sys.exit(1)

    try:
        data = load_package_file(path)
    except ValueError as e:
        print(f"Invalid package file {path}: {e}")
        sys.exit(1)

    title = str(data["title"]).strip()
    questions = data["questions"]
    if len(questions) != package_service.MAX_QUESTIONS_PER_PACKAGE:
        print(
            f"Warning: {len(questions)} questions; takers only see packages with "
            f"exactly {package_service.MAX_QUESTIONS_PER_PACKAGE}."
        )

    with SessionLocal() as db:
        admin = ensure_user(db, email=args.admin_email, password=args.admin_password, role=UserRole.admin)

        existing = db.scalar(select(QuizPackage).where(QuizPackage.title == title))
        if existing is not None:
            if not args.replace:
                print(f"Package '{title}' already exists; use --replace to re-import.")
                db.commit()
                return
            package_service.delete_package(db, existing.id)

        package = package_service.create_package(
            db,
            title=title,
            description=data.get("description"),
            created_by=admin.id,
        )
        try:
            for i, q in enumerate(questions):
                package_service.create_question(
                    db,
                    package.id,
                    {
                        "question_text": q["question_text"],
                        "option_a": q["option_a"],
                        "option_b": q["option_b"],
                        "option_c": q["option_c"],
                        "option_d": q["option_d"],
                        "option_e": q["option_e"],
                        "correct_answer": str(q["correct_answer"]).strip().upper(),
                        "order_index": i,
                    },
                )
        except QuizError as e:
            db.rollback()
            print(f"Import failed: {e.message}")
            sys.exit(1)

        db.commit()
        package_id = package.id

    print(f"Imported package '{title}' ({len(questions)} questions) id={package_id}")
    print(f"Admin ensured: {args.admin_email}")


if __name__ == "__main__":
    main()
