"""create wallets and deployments tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'wallets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('address', sqlmodel.sql.sqltypes.AutoString(length=42), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_wallets_address'), 'wallets', ['address'], unique=True)

    op.create_table(
        'deployments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('ts', sa.DateTime(), nullable=False),
        sa.Column('wallet_id', sa.Uuid(), nullable=False),
        sa.Column('network', sqlmodel.sql.sqltypes.AutoString(length=32), nullable=False),
        sa.Column('contract_address', sqlmodel.sql.sqltypes.AutoString(length=42), nullable=False),
        sa.Column('tx_hash', sqlmodel.sql.sqltypes.AutoString(length=66), nullable=False),
        sa.Column('gas_used', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tx_hash'),
    )
    op.create_index(op.f('ix_deployments_ts'), 'deployments', ['ts'], unique=False)
    op.create_index(op.f('ix_deployments_wallet_id'), 'deployments', ['wallet_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_deployments_wallet_id'), table_name='deployments')
    op.drop_index(op.f('ix_deployments_ts'), table_name='deployments')
    op.drop_table('deployments')
    op.drop_index(op.f('ix_wallets_address'), table_name='wallets')
    op.drop_table('wallets')
    # ### end Alembic commands ###
