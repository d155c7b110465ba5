"""create performance tables

Revision ID: 7c1e2a9f4b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '7c1e2a9f4b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_id', 'users', ['id'], unique=False)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'game_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('starting_cash', sa.Numeric(18, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('rankings_calculated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_game_sessions_id', 'game_sessions', ['id'], unique=False)
    op.create_index('ix_game_sessions_is_active', 'game_sessions', ['is_active'], unique=False)

    op.create_table(
        'assets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticker', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_assets_id', 'assets', ['id'], unique=False)
    op.create_index('ix_assets_ticker', 'assets', ['ticker'], unique=True)

    op.create_table(
        'portfolios',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('cash_balance', sa.Numeric(18, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['session_id'], ['game_sessions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_portfolios_id', 'portfolios', ['id'], unique=False)
    op.create_index('ix_portfolios_user_id', 'portfolios', ['user_id'], unique=False)
    op.create_index('ix_portfolios_session_id', 'portfolios', ['session_id'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('portfolio_id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.Enum('BUY', 'SELL', name='transactiontypeenum'), nullable=False),
        sa.Column('quantity', sa.Numeric(18, 6), nullable=False),
        sa.Column('price', sa.Numeric(18, 4), nullable=False),
        sa.Column('total', sa.Numeric(18, 2), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['portfolio_id'], ['portfolios.id'], ),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_id', 'transactions', ['id'], unique=False)
    op.create_index('ix_transactions_asset_id', 'transactions', ['asset_id'], unique=False)
    op.create_index('ix_transactions_portfolio_date', 'transactions', ['portfolio_id', 'date'], unique=False)

    op.create_table(
        'daily_prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('open', sa.Numeric(18, 4), nullable=True),
        sa.Column('high', sa.Numeric(18, 4), nullable=True),
        sa.Column('low', sa.Numeric(18, 4), nullable=True),
        sa.Column('close', sa.Numeric(18, 4), nullable=True),
        sa.Column('adjusted_close', sa.Numeric(18, 4), nullable=True),
        sa.Column('volume', sa.BigInteger(), nullable=True),
        sa.Column('data_source', sa.String(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('asset_id', 'date', name='uq_daily_prices_asset_date')
    )
    op.create_index('ix_daily_prices_id', 'daily_prices', ['id'], unique=False)
    op.create_index('ix_daily_prices_asset_id', 'daily_prices', ['asset_id'], unique=False)
    op.create_index('ix_daily_prices_date', 'daily_prices', ['date'], unique=False)

    op.create_table(
        'asset_quote_cache',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(18, 4), nullable=False),
        sa.Column('as_of', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('asset_id')
    )
    op.create_index('ix_asset_quote_cache_id', 'asset_quote_cache', ['id'], unique=False)

    op.create_table(
        'portfolio_performance',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('portfolio_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('portfolio_value', sa.Numeric(18, 2), nullable=False),
        sa.Column('sp500_value', sa.Numeric(18, 4), nullable=True),
        sa.Column('portfolio_percent_change', sa.Numeric(12, 4), nullable=False),
        sa.Column('sp500_percent_change', sa.Numeric(12, 4), nullable=True),
        sa.Column('outperformance', sa.Numeric(12, 4), nullable=True),
        sa.ForeignKeyConstraint(['portfolio_id'], ['portfolios.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('portfolio_id', 'date', name='uq_portfolio_performance_portfolio_date')
    )
    op.create_index('ix_portfolio_performance_id', 'portfolio_performance', ['id'], unique=False)
    op.create_index('ix_portfolio_performance_portfolio_id', 'portfolio_performance', ['portfolio_id'], unique=False)
    op.create_index('ix_portfolio_performance_date', 'portfolio_performance', ['date'], unique=False)

    op.create_table(
        'user_rankings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.Column('total_portfolio_value', sa.Numeric(18, 2), nullable=False),
        sa.Column('return_percent', sa.Numeric(12, 2), nullable=False),
        sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['session_id'], ['game_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'session_id', name='uq_user_rankings_user_session')
    )
    op.create_index('ix_user_rankings_id', 'user_rankings', ['id'], unique=False)
    op.create_index('ix_user_rankings_calculated_at', 'user_rankings', ['calculated_at'], unique=False)
    op.create_index('ix_user_rankings_session_rank', 'user_rankings', ['session_id', 'rank'], unique=False)


def downgrade() -> None:
    op.drop_table('user_rankings')
    op.drop_table('portfolio_performance')
    op.drop_table('asset_quote_cache')
    op.drop_table('daily_prices')
    op.drop_table('transactions')
    op.drop_table('portfolios')
    op.drop_table('assets')
    op.drop_table('game_sessions')
    op.drop_table('users')
    sa.Enum(name='transactiontypeenum').drop(op.get_bind(), checkfirst=True)
