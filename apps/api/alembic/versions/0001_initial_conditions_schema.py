"""initial conditions schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'spot',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('country', sa.Text(), nullable=True),
        sa.Column('windy_spot_id', sa.Text(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('timezone', sa.Text(), nullable=True),
        sa.Column('sports', postgresql.JSONB(), nullable=False),
        sa.Column('webcam_url', sa.Text(), nullable=True),
        sa.Column('webcam_stream_source', sa.Text(), nullable=True),
        sa.Column('live_report_url', sa.Text(), nullable=True),
    )

    op.create_table(
        'spot_config',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sport', sa.Text(), nullable=False),
        sa.Column('min_speed', sa.Float(), nullable=True),
        sa.Column('min_gust', sa.Float(), nullable=True),
        sa.Column('direction_from', sa.Float(), nullable=True),
        sa.Column('direction_to', sa.Float(), nullable=True),
        sa.Column('min_swell_height', sa.Float(), nullable=True),
        sa.Column('max_swell_height', sa.Float(), nullable=True),
        sa.Column('swell_direction_from', sa.Float(), nullable=True),
        sa.Column('swell_direction_to', sa.Float(), nullable=True),
        sa.Column('min_period', sa.Float(), nullable=True),
        sa.Column('optimal_tide', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['spot_id'], ['spot.id'], ),
    )
    op.create_index('ix_spot_config_spot_id', 'spot_config', ['spot_id'])
    op.create_index('ix_spot_config_spot_sport', 'spot_config', ['spot_id', 'sport'], unique=True)

    op.create_table(
        'scrape',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('scrape_timestamp', sa.BigInteger(), nullable=False),
        sa.Column('is_successful', sa.Boolean(), nullable=False),
        sa.Column('slots_count', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['spot_id'], ['spot.id'], ),
    )
    op.create_index('ix_scrape_spot_timestamp', 'scrape', ['spot_id', 'scrape_timestamp'])

    op.create_table(
        'forecast_slot',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('scrape_timestamp', sa.BigInteger(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('speed', sa.Float(), nullable=False),
        sa.Column('gust', sa.Float(), nullable=False),
        sa.Column('direction', sa.Float(), nullable=False),
        sa.Column('wave_height', sa.Float(), nullable=True),
        sa.Column('wave_period', sa.Float(), nullable=True),
        sa.Column('wave_direction', sa.Float(), nullable=True),
        sa.Column('tide_height', sa.Float(), nullable=True),
        sa.Column('tide_type', sa.Text(), nullable=True),
        sa.Column('tide_time', sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(['spot_id'], ['spot.id'], ),
    )
    op.create_index('ix_forecast_slot_spot_timestamp', 'forecast_slot', ['spot_id', 'timestamp'])
    op.create_index('ix_forecast_slot_spot_scrape', 'forecast_slot', ['spot_id', 'scrape_timestamp'])

    op.create_table(
        'tide_event',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('time', sa.BigInteger(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('height', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['spot_id'], ['spot.id'], ),
    )
    op.create_index('ix_tide_event_spot_time', 'tide_event', ['spot_id', 'time'])

    op.create_table(
        'system_sport_prompt',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('sport', sa.Text(), nullable=False, unique=True),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
    )

    op.create_table(
        'scoring_prompt',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sport', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('spot_prompt', sa.Text(), nullable=False, server_default=''),
        sa.Column('temporal_prompt', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['spot_id'], ['spot.id'], ),
    )
    op.create_index('ix_scoring_prompt_spot_sport_user', 'scoring_prompt', ['spot_id', 'sport', 'user_id'])

    op.create_table(
        'condition_score',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('slot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('sport', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('reasoning', sa.Text(), nullable=False),
        sa.Column('factors', postgresql.JSONB(), nullable=True),
        sa.Column('model', sa.Text(), nullable=False),
        sa.Column('scored_at', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['slot_id'], ['forecast_slot.id'], ),
        sa.ForeignKeyConstraint(['spot_id'], ['spot.id'], ),
    )
    op.create_index(
        'ix_condition_score_spot_sport_timestamp', 'condition_score', ['spot_id', 'sport', 'timestamp']
    )
    op.create_index('ix_condition_score_slot_sport_user', 'condition_score', ['slot_id', 'sport', 'user_id'])
    # At most one live system score per (slot, sport)
    op.create_index(
        'uq_condition_score_live_system',
        'condition_score',
        ['slot_id', 'sport'],
        unique=True,
        postgresql_where=sa.text('user_id IS NULL'),
    )

    op.create_table(
        'score_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('score_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('slot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('sport', sa.Text(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('reasoning', sa.Text(), nullable=False),
        sa.Column('factors', postgresql.JSONB(), nullable=True),
        sa.Column('model', sa.Text(), nullable=False),
        sa.Column('scored_at', sa.BigInteger(), nullable=False),
        sa.Column('system_sport_prompt_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('scoring_prompt_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('system_prompt', sa.Text(), nullable=True),
        sa.Column('spot_prompt', sa.Text(), nullable=True),
        sa.Column('temporal_prompt', sa.Text(), nullable=True),
        sa.Column('replaced_at', sa.BigInteger(), nullable=False),
    )
    op.create_index('ix_score_history_score_id', 'score_history', ['score_id'])

    op.create_table(
        'scoring_log',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('score_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('slot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('spot_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sport', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('system_prompt', sa.Text(), nullable=False),
        sa.Column('user_prompt', sa.Text(), nullable=False),
        sa.Column('model', sa.Text(), nullable=False),
        sa.Column('temperature', sa.Float(), nullable=False),
        sa.Column('max_tokens', sa.Integer(), nullable=False),
        sa.Column('raw_response', sa.Text(), nullable=False),
        sa.Column('scored_at', sa.BigInteger(), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('attempt', sa.Integer(), nullable=True),
    )
    op.create_index('ix_scoring_log_score_id', 'scoring_log', ['score_id'])


def downgrade() -> None:
    op.drop_index('ix_scoring_log_score_id', table_name='scoring_log')
    op.drop_table('scoring_log')
    op.drop_index('ix_score_history_score_id', table_name='score_history')
    op.drop_table('score_history')
    op.drop_index('uq_condition_score_live_system', table_name='condition_score')
    op.drop_index('ix_condition_score_slot_sport_user', table_name='condition_score')
    op.drop_index('ix_condition_score_spot_sport_timestamp', table_name='condition_score')
    op.drop_table('condition_score')
    op.drop_index('ix_scoring_prompt_spot_sport_user', table_name='scoring_prompt')
    op.drop_table('scoring_prompt')
    op.drop_table('system_sport_prompt')
    op.drop_index('ix_tide_event_spot_time', table_name='tide_event')
    op.drop_table('tide_event')
    op.drop_index('ix_forecast_slot_spot_scrape', table_name='forecast_slot')
    op.drop_index('ix_forecast_slot_spot_timestamp', table_name='forecast_slot')
    op.drop_table('forecast_slot')
    op.drop_index('ix_scrape_spot_timestamp', table_name='scrape')
    op.drop_table('scrape')
    op.drop_index('ix_spot_config_spot_sport', table_name='spot_config')
    op.drop_index('ix_spot_config_spot_id', table_name='spot_config')
    op.drop_table('spot_config')
    op.drop_table('spot')
