"""Email verification and password reset tokens on users

Revision ID: 20261019_link_tokens
Revises: 20261018_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_link_tokens"
down_revision = "20261018_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.add_column(sa.Column("email_verified", sa.Boolean(), server_default=sa.false(), nullable=False))
        batch_op.add_column(sa.Column("email_verification_token_hash", sa.String(64), nullable=True))
        batch_op.add_column(sa.Column("password_reset_token_hash", sa.String(64), nullable=True))
        batch_op.add_column(sa.Column("password_reset_expires", sa.DateTime(timezone=True), nullable=True))
        batch_op.create_index("ix_users_email_verification_token_hash", ["email_verification_token_hash"])
        batch_op.create_index("ix_users_password_reset_token_hash", ["password_reset_token_hash"])


def downgrade():
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.drop_index("ix_users_password_reset_token_hash")
        batch_op.drop_index("ix_users_email_verification_token_hash")
        batch_op.drop_column("password_reset_expires")
        batch_op.drop_column("password_reset_token_hash")
        batch_op.drop_column("email_verification_token_hash")
        batch_op.drop_column("email_verified")
