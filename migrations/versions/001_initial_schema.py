"""
001 — Initial schema: students, predictions, alerts, chat_conversations

Revision ID: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("student_code", sa.String(50), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("career", sa.String(200), nullable=False),
        sa.Column("semester", sa.Integer, nullable=True),
        sa.Column("gpa", sa.Float, nullable=True),
        sa.Column("credits_completed", sa.Integer, nullable=True),
        sa.Column("credits_enrolled", sa.Integer, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_students_student_code", "students", ["student_code"], unique=True)

    op.create_table(
        "predictions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("risk_score", sa.Integer, nullable=False),
        sa.Column("risk_factors", JSON, nullable=False),
        sa.Column("recommendations", JSON, nullable=False),
        sa.Column("confidence_level", sa.Float, nullable=False),
        sa.Column("model_version", sa.String(50), nullable=False),
        sa.Column("prediction_date", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_predictions_student_id", "predictions", ["student_id"])
    op.create_index("ix_predictions_prediction_date", "predictions", ["prediction_date"])

    op.create_table(
        "alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("alert_type", sa.String(20), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("metadata", JSON, nullable=True),
        sa.Column("is_resolved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("resolved_by", sa.String(100), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_alerts_student_id", "alerts", ["student_id"])

    op.create_table(
        "chat_conversations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("messages", JSON, nullable=False),
        sa.Column("sentiment_score", sa.Float, nullable=True),
        sa.Column("is_escalated", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("last_activity", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # One conversation per student; the upsert targets this index
    op.create_index("ix_chat_conversations_student_id", "chat_conversations", ["student_id"], unique=True)


def downgrade() -> None:
    op.drop_table("chat_conversations")
    op.drop_table("alerts")
    op.drop_table("predictions")
    op.drop_table("students")
