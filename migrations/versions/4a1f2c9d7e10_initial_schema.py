"""initial schema

Revision ID: 4a1f2c9d7e10
Revises:
Create Date: 2025-09-02 10:14:22.518311
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "4a1f2c9d7e10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PERSON_STATUSES = "'enrolled','transferred','graduated','suspended','deceased'"


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _create_person_table(name: str) -> None:
    # learners and students share one column set
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("upi", sa.String(16), nullable=False, unique=True),
        sa.Column("first_name", sa.String(64), nullable=False),
        sa.Column("last_name", sa.String(64), nullable=False),
        sa.Column("other_name", sa.String(64)),
        sa.Column("gender", sa.String(16), nullable=False),
        sa.Column("dob", sa.Date(), nullable=False),
        sa.Column("admission_date", sa.Date()),
        sa.Column("photo", sa.String(512)),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("deceased", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("date_of_death", sa.Date()),
        sa.Column("cause_of_death", sa.String(128)),
        sa.Column("death_details", sa.JSON()),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(f"status IN ({PERSON_STATUSES})", name=f"ck_{name}_status"),
        sa.CheckConstraint(
            "(deceased AND status = 'deceased') OR (NOT deceased AND status <> 'deceased')",
            name=f"ck_{name}_deceased_status",
        ),
    )
    op.create_index(f"ix_{name}_institution_id", name, ["institution_id"])


def upgrade() -> None:
    op.create_table(
        "institutions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("unique_code", sa.String(32), unique=True),
        sa.Column("type", sa.String(64)),
        sa.Column("level", sa.String(64)),
        sa.Column("category", sa.String(64)),
        sa.Column("ownership", sa.String(64)),
        sa.Column("education_system", sa.String(64)),
        sa.Column("county", sa.String(64)),
        sa.Column("subcounty", sa.String(64)),
        sa.Column("ward", sa.String(64)),
        sa.Column("zone", sa.String(64)),
        sa.Column("location", sa.String(128)),
        sa.Column("nearest_town", sa.String(128)),
        sa.Column("nearest_police", sa.String(128)),
        sa.Column("nearest_health", sa.String(128)),
        sa.Column("geo_lat", sa.String(32)),
        sa.Column("geo_lng", sa.String(32)),
        sa.Column("kra_pin", sa.String(32)),
        sa.Column("registration_no", sa.String(64)),
        sa.Column("registration_date", sa.Date()),
        sa.Column("sbp_compliance", sa.Boolean()),
        sa.Column("ownership_doc", sa.String(512)),
        *_timestamps(),
    )

    _create_person_table("learners")
    _create_person_table("students")

    op.create_table(
        "upi_registry",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("upi", sa.String(16), nullable=False),
        sa.Column("jurisdiction", sa.String(1), nullable=False),
        sa.Column("institution_code", sa.String(1), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("program", sa.String(16), nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("upi", name="uq_upi_registry_upi"),
        sa.UniqueConstraint("jurisdiction", "institution_code", "sequence", name="uq_upi_registry_sequence"),
        sa.CheckConstraint("sequence > 0", name="ck_upi_registry_sequence_positive"),
        sa.CheckConstraint("program IN ('ecde','vocational')", name="ck_upi_registry_program"),
    )
    op.create_index("ix_upi_registry_institution_id", "upi_registry", ["institution_id"])

    op.create_table(
        "person_status_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("program", sa.String(16), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("upi", sa.String(16), nullable=False),
        sa.Column("prev_status", sa.String(16)),
        sa.Column("new_status", sa.String(16), nullable=False),
        sa.Column("reason", sa.String(256)),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("recorded_by", sa.String(64)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_person_status_events_institution_id", "person_status_events", ["institution_id"])
    op.create_index("ix_person_status_events_upi", "person_status_events", ["upi"])
    op.create_index("ix_person_status_events_person", "person_status_events", ["program", "person_id", "event_date"])

    op.create_table(
        "transfer_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("upi", sa.String(16), nullable=False),
        sa.Column("program", sa.String(16), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("source_institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("destination_institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="RESTRICT")),
        sa.Column("reason", sa.String(256), nullable=False),
        sa.Column("notes", sa.String(1024)),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("state", sa.String(16), nullable=False),
        sa.Column("received_on", sa.Date()),
        sa.Column("received_by_institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="RESTRICT")),
        *_timestamps(),
        sa.CheckConstraint("state IN ('pending','received')", name="ck_transfer_records_state"),
    )
    op.create_index("ix_transfer_records_upi", "transfer_records", ["upi"])
    op.create_index("ix_transfer_records_source_institution_id", "transfer_records", ["source_institution_id"])
    op.create_index("ix_transfer_records_destination_institution_id", "transfer_records", ["destination_institution_id"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("full_name", sa.String(128)),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("ix_profiles_institution_id", "profiles", ["institution_id"])

    op.create_table(
        "user_roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        sa.CheckConstraint(
            "role IN ('super_admin','institution_admin','teacher','data_clerk')",
            name="ck_user_roles_role",
        ),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bank_name", sa.String(128), nullable=False),
        sa.Column("branch", sa.String(128)),
        sa.Column("account_number", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("author", sa.String(128)),
        sa.Column("publisher", sa.String(128)),
        sa.Column("isbn", sa.String(32)),
        sa.Column("subject", sa.String(64)),
        sa.Column("level", sa.String(64)),
        sa.Column("category", sa.String(64)),
        sa.Column("condition", sa.String(32)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2)),
        sa.Column("year_published", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "infrastructure",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("asset_name", sa.String(128), nullable=False),
        sa.Column("asset_type", sa.String(64)),
        sa.Column("classification", sa.String(64)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("cost", sa.Numeric(14, 2)),
        sa.Column("year_of_acquisition", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "emergencies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("calamity_name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("reporting_date", sa.Date(), nullable=False),
        sa.Column("response", sa.Text()),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "capitation_receipts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("institution_id", sa.Integer(), sa.ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("receipt_no", sa.String(64), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("date_received", sa.Date(), nullable=False),
        sa.Column("file_path", sa.String(512)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    for table in ("bank_accounts", "books", "infrastructure", "emergencies", "capitation_receipts"):
        op.create_index(f"ix_{table}_institution_id", table, ["institution_id"])


def downgrade() -> None:
    for table in (
        "capitation_receipts", "emergencies", "infrastructure", "books", "bank_accounts",
        "user_roles", "profiles", "transfer_records", "person_status_events",
        "upi_registry", "students", "learners", "institutions",
    ):
        op.drop_table(table)
