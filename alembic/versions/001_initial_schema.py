"""Initial schema: users, otps, journeys, emergencies, safety circles, web links, message logs.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("device_id", sa.String(length=255), nullable=True),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending_verification"),
        sa.Column("failed_attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("otp_locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_otp_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("otp_hour_window_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("otp_day_window_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("otp_requests_last_hour", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("otp_requests_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("users_pkey")),
    )
    op.create_index(op.f("ix_users_phone_number"), "users", ["phone_number"], unique=True)

    op.create_table(
        "otps",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("purpose", sa.String(length=20), nullable=False),
        sa.Column("code_hash", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_otps_user_id"), "otps", ["user_id"], unique=False)
    op.create_index(
        "uq_otps_pending_phone_purpose",
        "otps",
        ["phone_number", "purpose"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "journeys",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("start_location_name", sa.String(length=255), nullable=True),
        sa.Column("destination_name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_journeys_user_id"), "journeys", ["user_id"], unique=False)

    op.create_table(
        "emergencies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("journey_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("emergency_type", sa.String(length=30), nullable=False, server_default="manual"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["journey_id"], ["journeys.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_emergencies_journey_id"), "emergencies", ["journey_id"], unique=False)
    op.create_index(op.f("ix_emergencies_user_id"), "emergencies", ["user_id"], unique=False)

    op.create_table(
        "safety_circles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("contact_name", sa.String(length=100), nullable=False),
        sa.Column("contact_phone", sa.String(length=20), nullable=False),
        sa.Column("relationship", sa.String(length=50), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("receive_sms", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("total_alerts_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_alert_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_safety_circles_user_id"), "safety_circles", ["user_id"], unique=False)

    op.create_table(
        "web_link_access",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("journey_id", sa.Integer(), nullable=False),
        sa.Column("emergency_id", sa.Integer(), nullable=True),
        sa.Column("web_link_token", sa.String(length=36), nullable=False),
        sa.Column("web_link_type", sa.String(length=20), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["journey_id"], ["journeys.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["emergency_id"], ["emergencies.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("web_link_token", name="uq_web_link_access_token"),
    )
    op.create_index(op.f("ix_web_link_access_journey_id"), "web_link_access", ["journey_id"], unique=False)
    op.create_index(op.f("ix_web_link_access_emergency_id"), "web_link_access", ["emergency_id"], unique=False)

    op.create_table(
        "message_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("journey_id", sa.Integer(), nullable=False),
        sa.Column("emergency_id", sa.Integer(), nullable=True),
        sa.Column("circle_member_id", sa.Integer(), nullable=True),
        sa.Column("to_number", sa.String(length=20), nullable=False),
        sa.Column("to_name", sa.String(length=200), nullable=True),
        sa.Column("channel_type", sa.String(length=10), nullable=False, server_default="sms"),
        sa.Column("message_type", sa.String(length=30), nullable=False),
        sa.Column("message_text", sa.Text(), nullable=False),
        sa.Column("web_link", sa.Text(), nullable=True),
        sa.Column("web_link_token", sa.String(length=36), nullable=True),
        sa.Column("delivery_status", sa.String(length=20), nullable=False),
        sa.Column("provider_status", sa.String(length=255), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["journey_id"], ["journeys.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["emergency_id"], ["emergencies.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["circle_member_id"], ["safety_circles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_message_logs_user_id"), "message_logs", ["user_id"], unique=False)
    op.create_index(op.f("ix_message_logs_journey_id"), "message_logs", ["journey_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_message_logs_journey_id"), table_name="message_logs")
    op.drop_index(op.f("ix_message_logs_user_id"), table_name="message_logs")
    op.drop_table("message_logs")
    op.drop_index(op.f("ix_web_link_access_emergency_id"), table_name="web_link_access")
    op.drop_index(op.f("ix_web_link_access_journey_id"), table_name="web_link_access")
    op.drop_table("web_link_access")
    op.drop_index(op.f("ix_safety_circles_user_id"), table_name="safety_circles")
    op.drop_table("safety_circles")
    op.drop_index(op.f("ix_emergencies_user_id"), table_name="emergencies")
    op.drop_index(op.f("ix_emergencies_journey_id"), table_name="emergencies")
    op.drop_table("emergencies")
    op.drop_index(op.f("ix_journeys_user_id"), table_name="journeys")
    op.drop_table("journeys")
    op.drop_index("uq_otps_pending_phone_purpose", table_name="otps")
    op.drop_index(op.f("ix_otps_user_id"), table_name="otps")
    op.drop_table("otps")
    op.drop_index(op.f("ix_users_phone_number"), table_name="users")
    op.drop_table("users")
