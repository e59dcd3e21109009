"""add client request id to submissions

Revision ID: 8e4d06c51a27
Revises: 3f1c2a9b7d10
Create Date: 2026-10-16 17:42:51.902113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e4d06c51a27'
down_revision: Union[str, Sequence[str], None] = '3f1c2a9b7d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    with op.batch_alter_table("submissions", recreate="always") as batch_op:
        batch_op.add_column(sa.Column("client_request_id", sa.String(128), nullable=True))
        batch_op.create_unique_constraint(
            "uq_submission_student_request",
            ["student_id", "client_request_id"],
        )


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table("submissions", recreate="always") as batch_op:
        batch_op.drop_constraint(
            "uq_submission_student_request",
            type_="unique",
        )
        batch_op.drop_column("client_request_id")
