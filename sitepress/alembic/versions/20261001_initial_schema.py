"""initial schema

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-01 09:00:00.000000

Creates websites, pages, page_revisions, website_versions and deployments.
Website draft/production pointers are plain GUID columns without foreign keys.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import advanced_alchemy.types


# revision identifiers, used by Alembic.
revision: str = '1a2b3c4d5e6f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column('created_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.Column('updated_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table('websites',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=True),
        sa.Column('brand_config', advanced_alchemy.types.json.JsonB, nullable=False),
        sa.Column('draft_version_id', advanced_alchemy.types.guid.GUID(length=16), nullable=True),
        sa.Column('production_version_id', advanced_alchemy.types.guid.GUID(length=16), nullable=True),
        sa.Column('provider_project_id', sa.String(length=255), nullable=True),
        sa.Column('production_url', sa.String(length=1024), nullable=True),
        sa.Column('last_deployed_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_websites')),
    )
    op.create_index(op.f('ix_websites_slug'), 'websites', ['slug'], unique=True)

    op.create_table('pages',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('website_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('path', sa.String(length=1024), nullable=False),
        sa.Column('is_homepage', sa.Boolean(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('current_revision_id', advanced_alchemy.types.guid.GUID(length=16), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['website_id'], ['websites.id'], name=op.f('fk_pages_website_id_websites'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_pages')),
        sa.UniqueConstraint('website_id', 'slug', name=op.f('uq_pages_website_id')),
    )
    op.create_index(op.f('ix_pages_website_id'), 'pages', ['website_id'], unique=False)

    op.create_table('page_revisions',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('page_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('revision_number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('content', advanced_alchemy.types.json.JsonB, nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['page_id'], ['pages.id'], name=op.f('fk_page_revisions_page_id_pages'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_page_revisions')),
        sa.UniqueConstraint('page_id', 'revision_number', name=op.f('uq_page_revisions_page_id')),
    )
    op.create_index(op.f('ix_page_revisions_page_id'), 'page_revisions', ['page_id'], unique=False)

    op.create_table('website_versions',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('website_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('version_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('trigger_type', sa.String(length=20), nullable=False),
        sa.Column('page_revisions', advanced_alchemy.types.json.JsonB, nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        sa.Column('published_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        sa.Column('archived_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['website_id'], ['websites.id'], name=op.f('fk_website_versions_website_id_websites'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_website_versions')),
        sa.UniqueConstraint('website_id', 'version_number', name=op.f('uq_website_versions_website_id')),
    )
    op.create_index(op.f('ix_website_versions_website_id'), 'website_versions', ['website_id'], unique=False)
    op.create_index(op.f('ix_website_versions_status'), 'website_versions', ['status'], unique=False)

    op.create_table('deployments',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('website_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('version_id', advanced_alchemy.types.guid.GUID(length=16), nullable=True),
        sa.Column('provider', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('target', sa.String(length=20), nullable=False),
        sa.Column('project_name', sa.String(length=255), nullable=False),
        sa.Column('url', sa.String(length=1024), nullable=True),
        sa.Column('inspector_url', sa.String(length=1024), nullable=True),
        sa.Column('provider_deployment_id', sa.String(length=255), nullable=True),
        sa.Column('provider_project_id', sa.String(length=255), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        sa.Column('completed_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['website_id'], ['websites.id'], name=op.f('fk_deployments_website_id_websites'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['version_id'], ['website_versions.id'], name=op.f('fk_deployments_version_id_website_versions'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_deployments')),
    )
    op.create_index(op.f('ix_deployments_website_id'), 'deployments', ['website_id'], unique=False)
    op.create_index(op.f('ix_deployments_version_id'), 'deployments', ['version_id'], unique=False)
    op.create_index(op.f('ix_deployments_status'), 'deployments', ['status'], unique=False)
    op.create_index(op.f('ix_deployments_provider_deployment_id'), 'deployments', ['provider_deployment_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_deployments_provider_deployment_id'), table_name='deployments')
    op.drop_index(op.f('ix_deployments_status'), table_name='deployments')
    op.drop_index(op.f('ix_deployments_version_id'), table_name='deployments')
    op.drop_index(op.f('ix_deployments_website_id'), table_name='deployments')
    op.drop_table('deployments')
    op.drop_index(op.f('ix_website_versions_status'), table_name='website_versions')
    op.drop_index(op.f('ix_website_versions_website_id'), table_name='website_versions')
    op.drop_table('website_versions')
    op.drop_index(op.f('ix_page_revisions_page_id'), table_name='page_revisions')
    op.drop_table('page_revisions')
    op.drop_index(op.f('ix_pages_website_id'), table_name='pages')
    op.drop_table('pages')
    op.drop_index(op.f('ix_websites_slug'), table_name='websites')
    op.drop_table('websites')
