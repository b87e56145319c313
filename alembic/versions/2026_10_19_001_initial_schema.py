"""Initial schema: clients, users, leads, activities, team rotations

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '001_initial_schema'
down_revision = None

# Enum columns store member names
user_role = sa.Enum('ADMIN', 'MANAGER', 'AGENT', name='userrole')
lead_status = sa.Enum('NEW', 'CONTACTED', 'QUALIFIED', 'PROPOSAL', 'CLOSED', 'LOST', name='leadstatus')
lead_priority = sa.Enum('LOW', 'MEDIUM', 'HIGH', name='leadpriority')
activity_type = sa.Enum('CALL', 'EMAIL', 'MEETING', 'NOTE', 'STATUS_CHANGE', name='activitytype')
rotation_type = sa.Enum('THIRTY_DAYS', 'NINETY_DAYS', name='rotationtype')


def upgrade():
    # Tenants
    op.create_table(
        'clients',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('subscription_plan', sa.String(50), nullable=False, server_default='basic'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
    )
    op.create_index('ix_clients_name', 'clients', ['name'])
    op.create_index('ix_clients_domain', 'clients', ['domain'], unique=True)
    op.create_index('ix_clients_is_active', 'clients', ['is_active'])

    # Users
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('clients.id'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('full_name', sa.String(200), nullable=False, server_default=''),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('client_id', 'email', name='uq_user_client_email'),
    )
    op.create_index('ix_users_client_id', 'users', ['client_id'])
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    # Leads
    op.create_table(
        'leads',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('company', sa.String(200), nullable=False),
        sa.Column('email', sa.String(254), nullable=False),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('message', sa.String(2000), nullable=True),
        sa.Column('status', lead_status, nullable=False),
        sa.Column('priority', lead_priority, nullable=False),
        sa.Column('source', sa.String(50), nullable=False, server_default='website'),
        sa.Column('assigned_to', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('estimated_value', sa.Float(), nullable=True),
        sa.Column('closing_probability', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('next_action', sa.String(500), nullable=True),
        sa.Column('tracking_id', sa.String(64), nullable=True),
        sa.Column('attribution', sa.JSON(), nullable=True),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('company_size', sa.String(), nullable=True),
        sa.Column('position', sa.String(), nullable=True),
        sa.Column('decision_maker', sa.String(), nullable=True),
        sa.Column('budget', sa.String(), nullable=True),
        sa.Column('timeline', sa.String(), nullable=True),
        sa.Column('expected_roi', sa.String(), nullable=True),
        sa.Column('current_solution', sa.String(), nullable=True),
        sa.Column('pain_points', sa.JSON(), nullable=True),
        sa.Column('team_size', sa.String(), nullable=True),
        sa.Column('current_results', sa.String(), nullable=True),
        sa.Column('main_goals', sa.JSON(), nullable=True),
        sa.Column('priority_areas', sa.JSON(), nullable=True),
        sa.Column('success_metrics', sa.String(), nullable=True),
        sa.Column('previous_experience', sa.String(), nullable=True),
        sa.Column('specific_requirements', sa.String(), nullable=True),
        sa.Column('qualified_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
    )
    op.create_index('ix_leads_client_id', 'leads', ['client_id'])
    op.create_index('ix_leads_company', 'leads', ['company'])
    op.create_index('ix_leads_email', 'leads', ['email'])
    op.create_index('ix_leads_status', 'leads', ['status'])
    op.create_index('ix_leads_priority', 'leads', ['priority'])
    op.create_index('ix_leads_source', 'leads', ['source'])
    op.create_index('ix_leads_assigned_to', 'leads', ['assigned_to'])
    op.create_index('ix_leads_tracking_id', 'leads', ['tracking_id'])
    op.create_index('ix_leads_created_at', 'leads', ['created_at'])

    # Activity log
    op.create_table(
        'activities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('lead_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('leads.id'), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('type', activity_type, nullable=False),
        sa.Column('description', sa.String(2000), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
    )
    op.create_index('ix_activities_client_id', 'activities', ['client_id'])
    op.create_index('ix_activities_lead_id', 'activities', ['lead_id'])
    op.create_index('ix_activities_type', 'activities', ['type'])
    op.create_index('ix_activities_created_at', 'activities', ['created_at'])

    # Team rotations
    op.create_table(
        'team_rotations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('rotation_type', rotation_type, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('end_date > start_date', name='ck_rotation_dates'),
    )
    op.create_index('ix_team_rotations_client_id', 'team_rotations', ['client_id'])
    op.create_index('ix_team_rotations_user_id', 'team_rotations', ['user_id'])
    op.create_index('ix_team_rotations_rotation_type', 'team_rotations', ['rotation_type'])
    op.create_index('ix_team_rotations_is_active', 'team_rotations', ['is_active'])


def downgrade():
    op.drop_table('team_rotations')
    op.drop_table('activities')
    op.drop_table('leads')
    op.drop_table('users')
    op.drop_table('clients')

    for enum in (rotation_type, activity_type, lead_priority, lead_status, user_role):
        enum.drop(op.get_bind(), checkfirst=True)
