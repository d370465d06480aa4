"""create quiz packages, questions, attempts and answers

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    answeroption = sa.Enum("A", "B", "C", "D", "E", name="answeroption")
    attemptstatus = sa.Enum("IN_PROGRESS", "COMPLETED", "TIME_OUT", name="attemptstatus")

    op.create_table(
        "quiz_packages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_quiz_packages_title", "quiz_packages", ["title"], unique=False)
    op.create_index("ix_quiz_packages_created_by", "quiz_packages", ["created_by"], unique=False)
    op.create_index("ix_quiz_packages_created_at", "quiz_packages", ["created_at"], unique=False)

    op.create_table(
        "quiz_questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("package_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quiz_packages.id"), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("option_a", sa.Text(), nullable=False),
        sa.Column("option_b", sa.Text(), nullable=False),
        sa.Column("option_c", sa.Text(), nullable=False),
        sa.Column("option_d", sa.Text(), nullable=False),
        sa.Column("option_e", sa.Text(), nullable=False),
        sa.Column("correct_answer", answeroption, nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("package_id", "order_index", name="uq_quiz_question_package_order"),
    )
    op.create_index("ix_quiz_questions_package_id", "quiz_questions", ["package_id"], unique=False)

    op.create_table(
        "quiz_attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("package_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quiz_packages.id"), nullable=False),
        sa.Column("status", attemptstatus, nullable=False, server_default="IN_PROGRESS"),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("current_question_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("time_remaining_seconds", sa.Integer(), nullable=False, server_default="7200"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_quiz_attempts_user_id", "quiz_attempts", ["user_id"], unique=False)
    op.create_index("ix_quiz_attempts_package_id", "quiz_attempts", ["package_id"], unique=False)
    op.create_index("ix_quiz_attempts_status", "quiz_attempts", ["status"], unique=False)
    op.create_index("ix_quiz_attempts_created_at", "quiz_attempts", ["created_at"], unique=False)
    op.create_index(
        "ux_quiz_attempts_one_in_progress",
        "quiz_attempts",
        ["user_id", "package_id"],
        unique=True,
        postgresql_where=sa.text("status = 'IN_PROGRESS'"),
    )

    op.create_table(
        "quiz_answers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("attempt_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quiz_attempts.id"), nullable=False),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quiz_questions.id"), nullable=False),
        sa.Column("selected_answer", postgresql.ENUM(name="answeroption", create_type=False), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_quiz_answers_attempt_id", "quiz_answers", ["attempt_id"], unique=False)
    op.create_index("ix_quiz_answers_question_id", "quiz_answers", ["question_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_quiz_answers_question_id", table_name="quiz_answers")
    op.drop_index("ix_quiz_answers_attempt_id", table_name="quiz_answers")
    op.drop_table("quiz_answers")

    op.drop_index("ux_quiz_attempts_one_in_progress", table_name="quiz_attempts")
    op.drop_index("ix_quiz_attempts_created_at", table_name="quiz_attempts")
    op.drop_index("ix_quiz_attempts_status", table_name="quiz_attempts")
    op.drop_index("ix_quiz_attempts_package_id", table_name="quiz_attempts")
    op.drop_index("ix_quiz_attempts_user_id", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")

    op.drop_index("ix_quiz_questions_package_id", table_name="quiz_questions")
    op.drop_table("quiz_questions")

    op.drop_index("ix_quiz_packages_created_at", table_name="quiz_packages")
    op.drop_index("ix_quiz_packages_created_by", table_name="quiz_packages")
    op.drop_index("ix_quiz_packages_title", table_name="quiz_packages")
    op.drop_table("quiz_packages")

    op.execute("DROP TYPE IF EXISTS attemptstatus")
    op.execute("DROP TYPE IF EXISTS answeroption")
