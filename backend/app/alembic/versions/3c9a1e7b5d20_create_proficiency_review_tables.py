"""Create user, application and review state tables

Revision ID: 3c9a1e7b5d20
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3c9a1e7b5d20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("banned", sa.Boolean(), nullable=False),
        sa.Column("ban_reason", sa.String(length=500), nullable=True),
        sa.Column("ban_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_email"), "user", ["email"], unique=True)

    op.create_table(
        "application",
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("surname", sa.String(length=255), nullable=False),
        sa.Column("firstname", sa.String(length=255), nullable=False),
        sa.Column("middlename", sa.String(length=255), nullable=True),
        sa.Column("matriculation_number", sa.String(length=64), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=False),
        sa.Column("course_of_study", sa.String(length=255), nullable=False),
        sa.Column("year_of_graduation", sa.String(length=32), nullable=False),
        sa.Column("class_of_degree", sa.String(length=128), nullable=False),
        sa.Column("degree_awarded", sa.String(length=128), nullable=False),
        sa.Column("reference_number", sa.String(length=128), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("remita_rrr", sa.String(length=64), nullable=False),
        sa.Column("sex", sa.String(length=16), nullable=False),
        sa.Column("mode_of_postage", sa.String(length=32), nullable=False),
        sa.Column("recipient_address", sa.String(length=1000), nullable=True),
        sa.Column("recipient_email", sa.String(length=255), nullable=True),
        sa.Column("certificate_file", sa.String(length=1024), nullable=False),
        sa.Column("payment_receipt_file", sa.String(length=1024), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_application_matriculation_number"),
        "application",
        ["matriculation_number"],
        unique=False,
    )
    op.create_index(
        op.f("ix_application_remita_rrr"), "application", ["remita_rrr"], unique=True
    )

    op.create_table(
        "application_hash",
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("processed_document_link", sa.String(length=1024), nullable=True),
        sa.Column("reason", sa.String(length=2000), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("application_id", sa.Uuid(), nullable=False),
        sa.Column("approved_by", sa.Uuid(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["application_id"], ["application.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["approved_by"], ["user.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("application_id"),
    )
    op.create_index(
        op.f("ix_application_hash_status"), "application_hash", ["status"], unique=False
    )


def downgrade():
    op.drop_index(op.f("ix_application_hash_status"), table_name="application_hash")
    op.drop_table("application_hash")
    op.drop_index(op.f("ix_application_remita_rrr"), table_name="application")
    op.drop_index(
        op.f("ix_application_matriculation_number"), table_name="application"
    )
    op.drop_table("application")
    op.drop_index(op.f("ix_user_email"), table_name="user")
    op.drop_table("user")
