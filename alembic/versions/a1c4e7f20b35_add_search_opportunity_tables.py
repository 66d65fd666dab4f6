"""Add search opportunity tables

Revision ID: a1c4e7f20b35
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f20b35'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # google_tokens
    op.create_table(
        'google_tokens',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('scope', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_google_tokens_id', 'google_tokens', ['id'])
    op.create_index('ix_google_tokens_user_id', 'google_tokens', ['user_id'], unique=True)

    # recommendation_cache_entries
    op.create_table(
        'recommendation_cache_entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('generation', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_recommendation_cache_entries_id', 'recommendation_cache_entries', ['id'])
    op.create_index('ix_recommendation_cache_entries_user_id', 'recommendation_cache_entries', ['user_id'], unique=True)
    op.create_index('ix_recommendation_cache_entries_expires_at', 'recommendation_cache_entries', ['expires_at'])

    # ai_recommendations
    op.create_table(
        'ai_recommendations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'entry_id',
            sa.Integer(),
            sa.ForeignKey('recommendation_cache_entries.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('target_keyword', sa.String(), nullable=False),
        sa.Column('suggested_title', sa.String(), nullable=True),
        sa.Column('explanation', sa.Text(), nullable=False),
        sa.Column('estimated_opportunity', sa.Integer(), nullable=True),
        sa.Column('confidence', sa.String(), nullable=False),
        sa.Column('priority', sa.String(), nullable=False),
        sa.Column('related_queries', sa.JSON(), nullable=True),
        sa.Column('existing_post_id', sa.String(), nullable=True),
    )
    op.create_index('ix_ai_recommendations_entry_id', 'ai_recommendations', ['entry_id'])
    op.create_index('ix_ai_recommendations_user_id', 'ai_recommendations', ['user_id'])

    # blog_posts (shared with the blog editor)
    op.create_table(
        'blog_posts',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=True, unique=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_blog_posts_user_id', 'blog_posts', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_blog_posts_user_id', table_name='blog_posts')
    op.drop_table('blog_posts')

    op.drop_index('ix_ai_recommendations_user_id', table_name='ai_recommendations')
    op.drop_index('ix_ai_recommendations_entry_id', table_name='ai_recommendations')
    op.drop_table('ai_recommendations')

    op.drop_index('ix_recommendation_cache_entries_expires_at', table_name='recommendation_cache_entries')
    op.drop_index('ix_recommendation_cache_entries_user_id', table_name='recommendation_cache_entries')
    op.drop_index('ix_recommendation_cache_entries_id', table_name='recommendation_cache_entries')
    op.drop_table('recommendation_cache_entries')

    op.drop_index('ix_google_tokens_user_id', table_name='google_tokens')
    op.drop_index('ix_google_tokens_id', table_name='google_tokens')
    op.drop_table('google_tokens')
