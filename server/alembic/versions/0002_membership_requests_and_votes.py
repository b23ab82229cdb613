"""membership requests, board votes and members

Revision ID: 0002_membership_requests_and_votes
Revises: 0001_create_users_and_roles
Create Date: 2026-09-14
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_membership_requests_and_votes"
down_revision = "0001_create_users_and_roles"
branch_labels = None
depends_on = None

REQUEST_STATUS = sa.Enum(
    "PENDING",
    "UNDER_REVIEW",
    "ADDITIONAL_INFO_REQUESTED",
    "APPROVED",
    "REJECTED",
    "WITHDRAWN",
    name="membership_request_status",
)
APPROVAL_SYSTEM = sa.Enum("SINGLE", "MULTI_BOARD", name="membership_approval_system")
RESIDENCE_STATUS = sa.Enum(
    "STUDENT",
    "WORK_PERMIT",
    "PERMANENT_RESIDENT",
    "CITIZEN",
    "EU_CITIZEN",
    "ASYLUM_SEEKER",
    "OTHER",
    name="membership_residence_status",
)
REQUESTED_TYPE = sa.Enum("REGULAR", "VOLUNTEER", name="membership_requested_type")
MEMBERSHIP_TYPE = sa.Enum("REGULAR", "VOLUNTEER", name="membership_type")
MEMBER_STATUS = sa.Enum("Active", "Inactive", "Pending", "Archived", name="member_status")
VOTE_CHOICE = sa.Enum("APPROVE", "REJECT", "ABSTAIN", name="board_vote_choice")


def upgrade() -> None:
    op.create_table(
        "membership_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_number", sa.String(length=20), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("first_name_native", sa.String(length=100), nullable=True),
        sa.Column("last_name_native", sa.String(length=100), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("postal_code", sa.String(length=30), nullable=False),
        sa.Column("country", sa.String(length=120), nullable=False),
        sa.Column("residence_status", RESIDENCE_STATUS, nullable=False),
        sa.Column("residence_since", sa.Date(), nullable=True),
        sa.Column("motivation", sa.Text(), nullable=False),
        sa.Column("hear_about_us", sa.Text(), nullable=True),
        sa.Column("interests", sa.Text(), nullable=True),
        sa.Column("skills", sa.Text(), nullable=True),
        sa.Column("requested_member_type", REQUESTED_TYPE, nullable=False, server_default="REGULAR"),
        sa.Column("preferred_language", sa.String(length=5), nullable=False, server_default="en"),
        sa.Column("approval_system", APPROVAL_SYSTEM, nullable=False, server_default="MULTI_BOARD"),
        sa.Column("designated_approver_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", REQUEST_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("decided_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("created_member_id", sa.Integer(), nullable=True),
        sa.Column("board_notified_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_membership_requests_request_number", "membership_requests", ["request_number"], unique=True)
    op.create_index("ix_membership_requests_email", "membership_requests", ["email"])
    op.create_index("ix_membership_requests_status", "membership_requests", ["status"])

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_number", sa.String(length=20), nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("first_name_native", sa.String(length=100), nullable=True),
        sa.Column("last_name_native", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("postal_code", sa.String(length=30), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=True),
        sa.Column("membership_type", MEMBERSHIP_TYPE, nullable=False, server_default="REGULAR"),
        sa.Column("residence_status", sa.String(length=40), nullable=True),
        sa.Column("join_date", sa.Date(), nullable=True),
        sa.Column("status", MEMBER_STATUS, nullable=False, server_default="Active"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "source_request_id",
            sa.Integer(),
            sa.ForeignKey("membership_requests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("source_request_id", name="uq_members_source_request_id"),
    )
    op.create_index("ix_members_member_number", "members", ["member_number"], unique=True)
    op.create_index("ix_members_username", "members", ["username"], unique=True)
    op.create_index("ix_members_email", "members", ["email"])

    op.create_foreign_key(
        "fk_membership_requests_created_member_id",
        "membership_requests",
        "members",
        ["created_member_id"],
        ["id"],
        ondelete="RESTRICT",
    )

    op.create_table(
        "membership_request_votes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Integer(),
            sa.ForeignKey("membership_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("voter_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("choice", VOTE_CHOICE, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cast_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("request_id", "voter_id", name="uq_membership_request_votes_request_voter"),
    )
    op.create_index("ix_membership_request_votes_request_id", "membership_request_votes", ["request_id"])
    op.create_index("ix_membership_request_votes_voter_id", "membership_request_votes", ["voter_id"])

    op.create_table(
        "membership_request_status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Integer(),
            sa.ForeignKey("membership_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(length=40), nullable=True),
        sa.Column("to_status", sa.String(length=40), nullable=False),
        sa.Column("changed_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("changed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_membership_request_status_history_request_id",
        "membership_request_status_history",
        ["request_id"],
    )
    op.create_index(
        "ix_membership_request_status_history_changed_at",
        "membership_request_status_history",
        ["changed_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_membership_request_status_history_changed_at", table_name="membership_request_status_history")
    op.drop_index("ix_membership_request_status_history_request_id", table_name="membership_request_status_history")
    op.drop_table("membership_request_status_history")
    op.drop_index("ix_membership_request_votes_voter_id", table_name="membership_request_votes")
    op.drop_index("ix_membership_request_votes_request_id", table_name="membership_request_votes")
    op.drop_table("membership_request_votes")
    op.drop_constraint("fk_membership_requests_created_member_id", "membership_requests", type_="foreignkey")
    op.drop_index("ix_members_email", table_name="members")
    op.drop_index("ix_members_username", table_name="members")
    op.drop_index("ix_members_member_number", table_name="members")
    op.drop_table("members")
    op.drop_index("ix_membership_requests_status", table_name="membership_requests")
    op.drop_index("ix_membership_requests_email", table_name="membership_requests")
    op.drop_index("ix_membership_requests_request_number", table_name="membership_requests")
    op.drop_table("membership_requests")

    bind = op.get_bind()
    for enum_type in (
        VOTE_CHOICE,
        MEMBER_STATUS,
        MEMBERSHIP_TYPE,
        REQUESTED_TYPE,
        RESIDENCE_STATUS,
        APPROVAL_SYSTEM,
        REQUEST_STATUS,
    ):
        enum_type.drop(bind, checkfirst=True)
