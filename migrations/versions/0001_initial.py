"""initial counting schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "location_map",
        sa.Column("location_name", sa.String(length=100), primary_key=True),
        sa.Column("external_location_id", sa.String(length=255), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    counter = op.create_table(
        "task_counter",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("last_number", sa.Integer(), nullable=False),
        sa.Column("last_letter", sa.String(length=1), nullable=False),
    )
    op.bulk_insert(counter, [{"id": 1, "last_number": 0, "last_letter": "A"}])

    op.create_table(
        "counting_tasks",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("task_no", sa.String(length=16), nullable=False, unique=True),
        sa.Column("department", sa.String(length=100), nullable=False),
        sa.Column("location", sa.String(length=100), nullable=False),
        sa.Column("external_location_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("filter_summary", sa.Text(), nullable=True),
        sa.Column("notes", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_counting_tasks_department", "counting_tasks", ["department"])
    op.create_index("ix_counting_tasks_location", "counting_tasks", ["location"])
    op.create_index("ix_counting_tasks_status", "counting_tasks", ["status"])
    op.create_index("ix_counting_tasks_created_at", "counting_tasks", ["created_at"])

    op.create_table(
        "task_items",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "task_id",
            GUID(),
            sa.ForeignKey("counting_tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("barcode", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("baseline", sa.Integer(), nullable=True),
        sa.Column("scan_history", sa.JSON(), nullable=False),
        sa.Column("computed_quantity", sa.Integer(), nullable=True),
        sa.Column("is_exact_match", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("committed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("committed_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_task_items_task_id", "task_items", ["task_id"])
    op.create_index("ix_task_items_task_position", "task_items", ["task_id", "position"])

    op.create_table(
        "zero_qty_reports",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("barcode", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=False),
        sa.Column("external_location_id", sa.String(length=255), nullable=True),
        sa.Column("baseline", sa.Integer(), nullable=False),
        sa.Column("poh", sa.Integer(), nullable=False),
        sa.Column("scan_history", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("committed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_zero_qty_reports_department", "zero_qty_reports", ["department"])
    op.create_index("ix_zero_qty_reports_location", "zero_qty_reports", ["location"])
    op.create_index("ix_zero_qty_reports_status", "zero_qty_reports", ["status"])
    op.create_index("ix_zero_qty_reports_submitted_at", "zero_qty_reports", ["submitted_at"])
    op.create_index("ix_zero_qty_reports_barcode_location", "zero_qty_reports", ["barcode", "location"])

    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=16), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=32), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("actor", sa.String(length=150), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("before_payload", sa.JSON(), nullable=True),
        sa.Column("after_payload", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("result", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_entity_id", table_name="audit_events")
    op.drop_index("ix_audit_events_action", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("idempotency_records")
    op.drop_index("ix_zero_qty_reports_barcode_location", table_name="zero_qty_reports")
    op.drop_index("ix_zero_qty_reports_submitted_at", table_name="zero_qty_reports")
    op.drop_index("ix_zero_qty_reports_status", table_name="zero_qty_reports")
    op.drop_index("ix_zero_qty_reports_location", table_name="zero_qty_reports")
    op.drop_index("ix_zero_qty_reports_department", table_name="zero_qty_reports")
    op.drop_table("zero_qty_reports")
    op.drop_index("ix_task_items_task_position", table_name="task_items")
    op.drop_index("ix_task_items_task_id", table_name="task_items")
    op.drop_table("task_items")
    op.drop_index("ix_counting_tasks_created_at", table_name="counting_tasks")
    op.drop_index("ix_counting_tasks_status", table_name="counting_tasks")
    op.drop_index("ix_counting_tasks_location", table_name="counting_tasks")
    op.drop_index("ix_counting_tasks_department", table_name="counting_tasks")
    op.drop_table("counting_tasks")
    op.drop_table("task_counter")
    op.drop_table("location_map")
