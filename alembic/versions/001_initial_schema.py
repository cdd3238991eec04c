"""Initial MOJI! schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

Tables:
- game_rooms: shared two-player session state, version column for compare-and-set
- room_players: creator (seat 1) and joiner (seat 2), unique per room
- game_settings: single row of admin-editable tuning
- ui_copy_sections: user-facing strings grouped by screen
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create all tables"""

    op.create_table('game_rooms',
        sa.Column('id', sa.String(16), nullable=False),
        sa.Column('created_by', sa.String(50), nullable=False),
        sa.Column('status', sa.Enum('waiting', 'playing', 'finished', name='roomstatus'),
                  nullable=False, server_default='waiting'),
        sa.Column('max_players', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('puzzle_sequence', sa.JSON(), nullable=True),
        sa.Column('current_puzzle_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('game_state', sa.Enum('playing', 'showing_answer', name='gamestate'),
                  nullable=False, server_default='playing'),
        sa.Column('round_winner', sa.String(10), nullable=True),
        sa.Column('round_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('player1_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('player2_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('players_ready_for_next', sa.JSON(), nullable=False),
        sa.Column('winner', sa.String(10), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        mysql_engine='InnoDB',
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )
    op.create_index('ix_game_rooms_id', 'game_rooms', ['id'])
    op.create_index('ix_game_rooms_status', 'game_rooms', ['status'])

    op.create_table('room_players',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(16), nullable=False),
        sa.Column('player_name', sa.String(50), nullable=False),
        sa.Column('is_creator', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('approved', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('seat', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['room_id'], ['game_rooms.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'seat', name='uq_room_players_room_seat'),
        mysql_engine='InnoDB',
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )
    op.create_index('ix_room_players_id', 'room_players', ['id'])
    op.create_index('ix_room_players_room_id', 'room_players', ['room_id'])

    op.create_table('game_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_timer', sa.Integer(), nullable=False),
        sa.Column('puzzles_per_game', sa.Integer(), nullable=False),
        sa.Column('win_condition', sa.Integer(), nullable=False),
        sa.Column('countdown_duration', sa.Integer(), nullable=False),
        sa.Column('puzzle_order', sa.String(20), nullable=False, server_default='random'),
        sa.Column('sequential_index', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        mysql_engine='InnoDB',
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )

    op.create_table('ui_copy_sections',
        sa.Column('id', sa.String(50), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(255), nullable=False, server_default=''),
        sa.Column('values', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        mysql_engine='InnoDB',
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )


def downgrade() -> None:
    """Drop all tables"""
    op.drop_table('ui_copy_sections')
    op.drop_table('game_settings')
    op.drop_index('ix_room_players_room_id', table_name='room_players')
    op.drop_index('ix_room_players_id', table_name='room_players')
    op.drop_table('room_players')
    op.drop_index('ix_game_rooms_status', table_name='game_rooms')
    op.drop_index('ix_game_rooms_id', table_name='game_rooms')
    op.drop_table('game_rooms')
