"""create runs table

Revision ID: 3e1f9a6c2b7d
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3e1f9a6c2b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if 'runs' in inspector.get_table_names():
        return
    op.create_table(
        'runs',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('distance_m', sa.Float(), nullable=False),
        sa.Column('duration_s', sa.Float(), nullable=False),
        sa.Column('avg_speed_kmh', sa.Float(), nullable=False),
        sa.Column('max_speed_kmh', sa.Float(), nullable=False),
        sa.Column('calories', sa.Integer(), nullable=False),
        sa.Column('path', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=False),
    )
    op.create_index('ix_runs_user_id', 'runs', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_runs_user_id', table_name='runs')
    op.drop_table('runs')
