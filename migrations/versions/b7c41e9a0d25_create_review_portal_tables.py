"""create review portal tables

Revision ID: b7c41e9a0d25
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'b7c41e9a0d25'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLE_VALUES = ('submitter', 'evaluator', 'admin')
IDEA_STATUS_VALUES = ('draft', 'submitted', 'under_review', 'accepted', 'rejected')
REVIEW_ACTION_VALUES = ('advance', 'return', 'hold', 'terminal_accept', 'terminal_reject')
TERMINAL_OUTCOME_VALUES = ('accepted', 'rejected')

ENUMS = {
    'userrole': USER_ROLE_VALUES,
    'ideastatus': IDEA_STATUS_VALUES,
    'reviewaction': REVIEW_ACTION_VALUES,
    'terminaloutcome': TERMINAL_OUTCOME_VALUES,
}


def _enum(name: str):
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _uuid():
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    # Create the enum types using raw SQL to avoid conflicts with metadata
    for name, values in ENUMS.items():
        enum_values = ", ".join(f"'{v}'" for v in values)
        op.execute(f"DO $$ BEGIN IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{name}') THEN CREATE TYPE {name} AS ENUM ({enum_values}); END IF; END $$;")

    op.create_table(
        'users',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', _enum('userrole'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'ideas',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('status', _enum('ideastatus'), nullable=False),
        sa.Column('evaluator_comment', sa.Text(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_ideas_user_id', 'ideas', ['user_id'])

    op.create_table(
        'review_workflows',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('version', sa.Integer(), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('activated_at', sa.DateTime(), nullable=True),
    )
    op.create_index(
        'uq_review_workflows_single_active', 'review_workflows', ['is_active'],
        unique=True, postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'review_stages',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('workflow_id', _uuid(), sa.ForeignKey('review_workflows.id'), nullable=False),
        sa.Column('name', sa.String(80), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('workflow_id', 'position', name='uq_review_stages_workflow_position'),
        sa.CheckConstraint('position >= 1', name='ck_review_stages_position_positive'),
    )
    op.create_index('ix_review_stages_workflow_id', 'review_stages', ['workflow_id'])
    op.execute("CREATE UNIQUE INDEX uq_review_stages_workflow_name ON review_stages (workflow_id, lower(name))")

    op.create_table(
        'idea_stage_states',
        sa.Column('idea_id', _uuid(), sa.ForeignKey('ideas.id'), primary_key=True),
        sa.Column('workflow_id', _uuid(), sa.ForeignKey('review_workflows.id'), nullable=False),
        sa.Column('current_stage_id', _uuid(), sa.ForeignKey('review_stages.id'), nullable=False),
        sa.Column('state_version', sa.Integer(), nullable=False),
        sa.Column('terminal_outcome', _enum('terminaloutcome'), nullable=True),
        sa.Column('updated_by', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'review_stage_events',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('idea_id', _uuid(), sa.ForeignKey('ideas.id'), nullable=False),
        sa.Column('workflow_id', _uuid(), sa.ForeignKey('review_workflows.id'), nullable=False),
        sa.Column('from_stage_id', _uuid(), sa.ForeignKey('review_stages.id'), nullable=True),
        sa.Column('to_stage_id', _uuid(), sa.ForeignKey('review_stages.id'), nullable=False),
        sa.Column('action', _enum('reviewaction'), nullable=False),
        sa.Column('evaluator_comment', sa.Text(), nullable=True),
        sa.Column('actor_id', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_review_stage_events_idea_id', 'review_stage_events', ['idea_id'])
    op.create_index('ix_review_stage_events_occurred_at', 'review_stage_events', ['occurred_at'])

    op.create_table(
        'idea_scores',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('idea_id', _uuid(), sa.ForeignKey('ideas.id'), nullable=False),
        sa.Column('evaluator_id', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('comment', sa.String(500), nullable=True),
        sa.UniqueConstraint('idea_id', 'evaluator_id', name='uq_idea_scores_idea_evaluator'),
        sa.CheckConstraint('score BETWEEN 1 AND 5', name='ck_idea_scores_range'),
    )
    op.create_index('ix_idea_scores_idea_id', 'idea_scores', ['idea_id'])

    op.create_table(
        'portal_settings',
        sa.Column('key', sa.String(), primary_key=True),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('updated_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('portal_settings')
    op.drop_index('ix_idea_scores_idea_id', table_name='idea_scores')
    op.drop_table('idea_scores')
    op.drop_index('ix_review_stage_events_occurred_at', table_name='review_stage_events')
    op.drop_index('ix_review_stage_events_idea_id', table_name='review_stage_events')
    op.drop_table('review_stage_events')
    op.drop_table('idea_stage_states')
    op.execute("DROP INDEX IF EXISTS uq_review_stages_workflow_name")
    op.drop_index('ix_review_stages_workflow_id', table_name='review_stages')
    op.drop_table('review_stages')
    op.drop_index('uq_review_workflows_single_active', table_name='review_workflows')
    op.drop_table('review_workflows')
    op.drop_index('ix_ideas_user_id', table_name='ideas')
    op.drop_table('ideas')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
