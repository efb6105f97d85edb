"""create_fleet_tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-17 09:12:41.318204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c9a7d2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    driverrole = sa.Enum('DRIVER', 'VEHICLE_MASTER', name='driverrole')
    vehiclestate = sa.Enum('AVAILABLE', 'ASSIGNED', 'IN_TRANSIT', 'RETURNING', name='vehiclestate')
    requeststatus = sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='requeststatus')

    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', driverrole, nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('current_vehicle_id', sa.String(), nullable=True),
        sa.Column('fcm_token', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_current_vehicle_id', 'users', ['current_vehicle_id'])

    op.create_table(
        'vehicles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('driver_id', sa.String(), nullable=True),
        sa.Column('driver_name', sa.String(), nullable=True),
        sa.Column('status', vehiclestate, nullable=False),
        sa.Column('current_location', sa.String(), nullable=False),
        sa.Column('destination', sa.String(), nullable=True),
        sa.Column('warehouse', sa.String(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('reached_destination_at', sa.DateTime(), nullable=True),
        sa.Column('returned_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_vehicles_id', 'vehicles', ['id'])
    op.create_index('ix_vehicles_driver_id', 'vehicles', ['driver_id'])
    op.create_index('ix_vehicles_status', 'vehicles', ['status'])
    op.create_index('ix_vehicles_updated_at', 'vehicles', ['updated_at'])

    op.create_table(
        'vehicle_requests',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('vehicle_id', sa.String(), nullable=False),
        sa.Column('driver_id', sa.String(), nullable=False),
        sa.Column('driver_name', sa.String(), nullable=False),
        sa.Column('destination', sa.String(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', requeststatus, nullable=False),
        sa.Column('requested_at', sa.DateTime(), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('responded_by', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_vehicle_requests_id', 'vehicle_requests', ['id'])
    op.create_index('ix_vehicle_requests_vehicle_id', 'vehicle_requests', ['vehicle_id'])
    op.create_index('ix_vehicle_requests_driver_id', 'vehicle_requests', ['driver_id'])
    op.create_index('ix_vehicle_requests_status', 'vehicle_requests', ['status'])
    op.create_index('ix_vehicle_requests_requested_at', 'vehicle_requests', ['requested_at'])

    op.create_table(
        'trip_history',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('vehicle_id', sa.String(), nullable=False),
        sa.Column('driver_id', sa.String(), nullable=False),
        sa.Column('driver_name', sa.String(), nullable=True),
        sa.Column('start_location', sa.String(), nullable=False),
        sa.Column('destination', sa.String(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trip_history_id', 'trip_history', ['id'])
    op.create_index('ix_trip_history_vehicle_id', 'trip_history', ['vehicle_id'])
    op.create_index('ix_trip_history_driver_id', 'trip_history', ['driver_id'])
    op.create_index('ix_trip_history_created_at', 'trip_history', ['created_at'])


def downgrade() -> None:
    op.drop_table('trip_history')
    op.drop_table('vehicle_requests')
    op.drop_table('vehicles')
    op.drop_table('users')

    if op.get_bind().dialect.name == "postgresql":
        for enum in ['requeststatus', 'vehiclestate', 'driverrole']:
            op.execute(f"DROP TYPE IF EXISTS {enum}")
