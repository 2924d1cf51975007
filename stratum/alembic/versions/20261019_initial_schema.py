"""initial schema: collections, contents, content versions

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the collections table (with its release timeline), the contents
table (live documents with embedded element trees) and the append-only
content_versions table.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import advanced_alchemy.types
from advanced_alchemy.types import JsonB


# revision identifiers, used by Alembic.
revision: str = '1a2b3c4d5e6f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _lock_columns() -> list[sa.Column]:
    return [
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_by', sa.String(length=255), nullable=True),
        sa.Column('locked_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        sa.Column('lock_reason', sa.Text(), nullable=True),
    ]


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column('created_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.Column('updated_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('collections',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('current_release', sa.String(length=255), nullable=True),
        sa.Column('releases', JsonB, nullable=False),
        *_lock_columns(),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_collections'))
    )
    op.create_index(op.f('ix_collections_slug'), 'collections', ['slug'], unique=True)

    op.create_table('contents',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('collection_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('current_version', sa.Integer(), nullable=False),
        sa.Column('published_version_id', advanced_alchemy.types.guid.GUID(length=16), nullable=True),
        sa.Column('elements', JsonB, nullable=False),
        sa.Column('metadata', JsonB, nullable=False),
        *_lock_columns(),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['collection_id'], ['collections.id'], name=op.f('fk_contents_collection_id_collections'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_contents')),
        sa.UniqueConstraint('collection_id', 'slug', name=op.f('uq_contents_collection_id')),
    )
    op.create_index(op.f('ix_contents_collection_id'), 'contents', ['collection_id'], unique=False)
    op.create_index(op.f('ix_contents_slug'), 'contents', ['slug'], unique=False)

    op.create_table('content_versions',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('content_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('elements', JsonB, nullable=False),
        sa.Column('snapshot', JsonB, nullable=False),
        sa.Column('release', sa.String(length=255), nullable=False),
        sa.Column('is_release_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        sa.Column('change_note', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['content_id'], ['contents.id'], name=op.f('fk_content_versions_content_id_contents'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_content_versions')),
        sa.UniqueConstraint('content_id', 'version_number', name=op.f('uq_content_versions_content_id')),
    )
    op.create_index(op.f('ix_content_versions_content_id'), 'content_versions', ['content_id'], unique=False)
    op.create_index(op.f('ix_content_versions_release'), 'content_versions', ['release'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_content_versions_release'), table_name='content_versions')
    op.drop_index(op.f('ix_content_versions_content_id'), table_name='content_versions')
    op.drop_table('content_versions')
    op.drop_index(op.f('ix_contents_slug'), table_name='contents')
    op.drop_index(op.f('ix_contents_collection_id'), table_name='contents')
    op.drop_table('contents')
    op.drop_index(op.f('ix_collections_slug'), table_name='collections')
    op.drop_table('collections')
