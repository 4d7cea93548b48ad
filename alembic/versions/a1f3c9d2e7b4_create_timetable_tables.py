"""Create timetable slot and syllabus progress tables.

Revision ID: a1f3c9d2e7b4
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "a1f3c9d2e7b4"
down_revision = None
branch_labels = None
depends_on = None

slot_type = sa.Enum("period", "break", name="timetable_slot_type")


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "timetable_slots",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("school_code", sa.String(), nullable=False),
    sa.Column("class_instance_id", sa.String(), nullable=False),
    sa.Column("class_date", sa.Date(), nullable=False),
    sa.Column("period_number", sa.Integer(), nullable=False),
    sa.Column("slot_type", slot_type, nullable=False),
    sa.Column("name", sa.String(), nullable=True),
    sa.Column("start_time", sa.Time(), nullable=False),
    sa.Column("end_time", sa.Time(), nullable=False),
    sa.Column("subject_id", sa.String(), nullable=True),
    sa.Column("teacher_id", sa.String(), nullable=True),
    sa.Column("syllabus_chapter_id", sa.String(), nullable=True),
    sa.Column("syllabus_topic_id", sa.String(), nullable=True),
    sa.Column("plan_text", sa.Text(), nullable=True),
    sa.Column("created_by", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("school_code", "class_instance_id", "class_date", "period_number", name="ux_timetable_slots_day_period_number"),
    sa.CheckConstraint("end_time > start_time", name="ck_timetable_slots_time_order"),
    sa.CheckConstraint("syllabus_chapter_id IS NULL OR syllabus_topic_id IS NULL", name="ck_timetable_slots_single_syllabus_ref"),
  )
  op.create_index("ix_timetable_slots_day", "timetable_slots", ["school_code", "class_instance_id", "class_date"], unique=False)

  op.create_table(
    "syllabus_progress",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("school_code", sa.String(), nullable=False),
    sa.Column("timetable_slot_id", sa.String(), nullable=False),
    sa.Column("class_instance_id", sa.String(), nullable=False),
    sa.Column("date", sa.Date(), nullable=False),
    sa.Column("subject_id", sa.String(), nullable=True),
    sa.Column("teacher_id", sa.String(), nullable=True),
    sa.Column("syllabus_chapter_id", sa.String(), nullable=True),
    sa.Column("syllabus_topic_id", sa.String(), nullable=True),
    sa.Column("created_by", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.ForeignKeyConstraint(["timetable_slot_id"], ["timetable_slots.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("school_code", "timetable_slot_id", name="ux_syllabus_progress_slot"),
  )
  op.create_index("ix_syllabus_progress_day", "syllabus_progress", ["school_code", "class_instance_id", "date"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_syllabus_progress_day", table_name="syllabus_progress")
  op.drop_table("syllabus_progress")
  op.drop_index("ix_timetable_slots_day", table_name="timetable_slots")
  op.drop_table("timetable_slots")
  slot_type.drop(op.get_bind(), checkfirst=True)
