"""Create recurring series tables

Revision ID: 001_recurring_series
Revises:
Create Date: 2026-10-19

Creates the tables backing recurring series:
- locations: venues referenced by series, instances and exceptions
- recurring_templates: series definitions (anchor range + recurrence rule)
- event_instances: materialized occurrences, unique per (template, date)
- event_exceptions: per-date overrides, unique per (template, date)

Instances and exceptions cascade with their template; location references
are cleared when a location is deleted.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_recurring_series'
down_revision = None
branch_labels = None
depends_on = None


def _uuid_column():
    return sa.Column(
        'uuid',
        postgresql.UUID(as_uuid=True).with_variant(
            sa.LargeBinary(16), 'sqlite'
        ),
        nullable=False
    )


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create locations, recurring_templates, event_instances and event_exceptions."""
    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_locations_uuid', 'locations', ['uuid'], unique=True)
    op.create_index('ix_locations_name', 'locations', ['name'])
    op.create_index('ix_locations_is_active', 'locations', ['is_active'])

    op.create_table(
        'recurring_templates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('anchor_start', sa.DateTime(), nullable=False),
        sa.Column('anchor_end', sa.DateTime(), nullable=False),
        sa.Column('frequency', sa.String(length=16), nullable=False),
        sa.Column('recurrence_interval', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('count', sa.Integer(), nullable=True),
        sa.Column('until', sa.Date(), nullable=True),
        sa.Column('by_day', sa.String(length=32), nullable=True),
        sa.Column('rule_text', sa.String(length=255), nullable=False),
        sa.Column(
            'location_id',
            sa.Integer(),
            sa.ForeignKey('locations.id', ondelete='SET NULL'),
            nullable=True
        ),
        sa.Column(
            'parent_template_id',
            sa.Integer(),
            sa.ForeignKey('recurring_templates.id', ondelete='SET NULL'),
            nullable=True
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('recurrence_interval >= 1', name='ck_recurring_templates_interval'),
        sa.CheckConstraint('count IS NULL OR until IS NULL', name='ck_recurring_templates_single_bound'),
        sa.CheckConstraint('anchor_end >= anchor_start', name='ck_recurring_templates_anchor_range'),
        sa.UniqueConstraint(
            'title', 'anchor_start', 'rule_text',
            name='uq_recurring_templates_identity'
        ),
    )
    op.create_index('ix_recurring_templates_uuid', 'recurring_templates', ['uuid'], unique=True)
    op.create_index('ix_recurring_templates_anchor_start', 'recurring_templates', ['anchor_start'])
    op.create_index('ix_recurring_templates_location_id', 'recurring_templates', ['location_id'])
    op.create_index('ix_recurring_templates_parent_template_id', 'recurring_templates', ['parent_template_id'])

    op.create_table(
        'event_instances',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        sa.Column(
            'template_id',
            sa.Integer(),
            sa.ForeignKey('recurring_templates.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('occurrence_date', sa.Date(), nullable=False),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column(
            'location_id',
            sa.Integer(),
            sa.ForeignKey('locations.id', ondelete='SET NULL'),
            nullable=True
        ),
        sa.Column('is_cancelled', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('template_id', 'occurrence_date', name='uq_event_instances_template_date'),
    )
    op.create_index('ix_event_instances_uuid', 'event_instances', ['uuid'], unique=True)
    op.create_index('ix_event_instances_template_id', 'event_instances', ['template_id'])
    op.create_index('ix_event_instances_start_at', 'event_instances', ['start_at'])
    op.create_index('ix_event_instances_location_id', 'event_instances', ['location_id'])
    op.create_index('ix_event_instances_template_start', 'event_instances', ['template_id', 'start_at'])

    op.create_table(
        'event_exceptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        sa.Column(
            'template_id',
            sa.Integer(),
            sa.ForeignKey('recurring_templates.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('occurrence_date', sa.Date(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column(
            'location_id',
            sa.Integer(),
            sa.ForeignKey('locations.id', ondelete='SET NULL'),
            nullable=True
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('template_id', 'occurrence_date', name='uq_event_exceptions_template_date'),
        sa.CheckConstraint("kind IN ('cancelled', 'modified')", name='ck_event_exceptions_kind'),
    )
    op.create_index('ix_event_exceptions_uuid', 'event_exceptions', ['uuid'], unique=True)
    op.create_index('ix_event_exceptions_template_id', 'event_exceptions', ['template_id'])


def downgrade() -> None:
    """Drop recurring series tables in dependency order."""
    op.drop_table('event_exceptions')
    op.drop_table('event_instances')
    op.drop_table('recurring_templates')
    op.drop_table('locations')
