"""Add posts, guards, attendance_records, weapons and weapon_log_entries tables

Revision ID: 001_field_attendance
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001_field_attendance"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

attendance_status = sa.Enum("CONFIRMED", "FLAGGED", name="attendancestatus")
weapon_action = sa.Enum("CHECKIN", "CHECKOUT", name="weaponaction")


def upgrade() -> None:
    bind = op.get_bind()
    is_sqlite = bind.dialect.name == "sqlite"
    ts_default = sa.text("CURRENT_TIMESTAMP") if is_sqlite else sa.text("now()")

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=ts_default, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_posts_id"), "posts", ["id"], unique=False)

    op.create_table(
        "guards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("ci", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="ACTIVE"),
        sa.Column("current_post_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=ts_default, nullable=False),
        sa.ForeignKeyConstraint(["current_post_id"], ["posts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ci"),
    )
    op.create_index(op.f("ix_guards_id"), "guards", ["id"], unique=False)
    op.create_index(op.f("ix_guards_user_id"), "guards", ["user_id"], unique=True)
    op.create_index(op.f("ix_guards_current_post_id"), "guards", ["current_post_id"], unique=False)

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("guard_id", sa.Integer(), nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=True),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("check_in_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_in_latitude", sa.Float(), nullable=False),
        sa.Column("check_in_longitude", sa.Float(), nullable=False),
        sa.Column("inside_geofence", sa.Boolean(), nullable=False),
        sa.Column("distance_meters", sa.Float(), nullable=True),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("check_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_latitude", sa.Float(), nullable=True),
        sa.Column("check_out_longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=ts_default, nullable=False),
        sa.ForeignKeyConstraint(["guard_id"], ["guards.id"]),
        sa.ForeignKeyConstraint(["post_id"], ["posts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_attendance_records_id"), "attendance_records", ["id"], unique=False)
    op.create_index(op.f("ix_attendance_records_guard_id"), "attendance_records", ["guard_id"], unique=False)
    op.create_index(op.f("ix_attendance_records_post_id"), "attendance_records", ["post_id"], unique=False)
    op.create_index(op.f("ix_attendance_records_work_date"), "attendance_records", ["work_date"], unique=False)
    # At most one open shift per guard
    op.create_index(
        "uq_attendance_records_open_per_guard",
        "attendance_records",
        ["guard_id"],
        unique=True,
        sqlite_where=sa.text("check_out_at IS NULL"),
        postgresql_where=sa.text("check_out_at IS NULL"),
    )

    op.create_table(
        "weapons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("serial_number", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("caliber", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("ammo_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("assigned_guard_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=ts_default, nullable=False),
        sa.ForeignKeyConstraint(["assigned_guard_id"], ["guards.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("serial_number"),
    )
    op.create_index(op.f("ix_weapons_id"), "weapons", ["id"], unique=False)
    op.create_index(op.f("ix_weapons_assigned_guard_id"), "weapons", ["assigned_guard_id"], unique=False)

    op.create_table(
        "weapon_log_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("weapon_id", sa.Integer(), nullable=False),
        sa.Column("guard_id", sa.Integer(), nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=True),
        sa.Column("action", weapon_action, nullable=False),
        sa.Column("ammo_observed", sa.Integer(), nullable=False),
        sa.Column("ammo_expected", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["weapon_id"], ["weapons.id"]),
        sa.ForeignKeyConstraint(["guard_id"], ["guards.id"]),
        sa.ForeignKeyConstraint(["post_id"], ["posts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_weapon_log_entries_id"), "weapon_log_entries", ["id"], unique=False)
    op.create_index(op.f("ix_weapon_log_entries_weapon_id"), "weapon_log_entries", ["weapon_id"], unique=False)
    op.create_index(op.f("ix_weapon_log_entries_guard_id"), "weapon_log_entries", ["guard_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_weapon_log_entries_guard_id"), table_name="weapon_log_entries")
    op.drop_index(op.f("ix_weapon_log_entries_weapon_id"), table_name="weapon_log_entries")
    op.drop_index(op.f("ix_weapon_log_entries_id"), table_name="weapon_log_entries")
    op.drop_table("weapon_log_entries")
    op.drop_index(op.f("ix_weapons_assigned_guard_id"), table_name="weapons")
    op.drop_index(op.f("ix_weapons_id"), table_name="weapons")
    op.drop_table("weapons")
    op.drop_index("uq_attendance_records_open_per_guard", table_name="attendance_records")
    op.drop_index(op.f("ix_attendance_records_work_date"), table_name="attendance_records")
    op.drop_index(op.f("ix_attendance_records_post_id"), table_name="attendance_records")
    op.drop_index(op.f("ix_attendance_records_guard_id"), table_name="attendance_records")
    op.drop_index(op.f("ix_attendance_records_id"), table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_index(op.f("ix_guards_current_post_id"), table_name="guards")
    op.drop_index(op.f("ix_guards_user_id"), table_name="guards")
    op.drop_index(op.f("ix_guards_id"), table_name="guards")
    op.drop_table("guards")
    op.drop_index(op.f("ix_posts_id"), table_name="posts")
    op.drop_table("posts")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        weapon_action.drop(bind, checkfirst=True)
        attendance_status.drop(bind, checkfirst=True)
