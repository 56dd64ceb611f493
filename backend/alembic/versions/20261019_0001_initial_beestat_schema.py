"""initial beestat schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False)


def _user_id() -> sa.Column:
    return sa.Column("user_id", sa.BigInteger(), nullable=False)


def _flag(name: str, default: bool = False) -> sa.Column:
    return sa.Column(name, sa.Boolean(), server_default=sa.text("true" if default else "false"), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _json(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, postgresql.JSONB(astext_type=sa.Text()), nullable=nullable)


ECOBEE_THERMOSTAT_JSON_COLUMNS = (
    "json_runtime",
    "json_extended_runtime",
    "json_electricity",
    "json_settings",
    "json_location",
    "json_program",
    "json_events",
    "json_device",
    "json_technician",
    "json_utility",
    "json_management",
    "json_alerts",
    "json_weather",
    "json_house_details",
    "json_oem_cfg",
    "json_equipment_status",
    "json_notification_settings",
    "json_privacy",
    "json_version",
    "json_remote_sensors",
    "json_audio",
)


def upgrade() -> None:
    op.create_table(
        "users",
        _id(),
        sa.Column("username", sa.String(length=255), nullable=True),
        _flag("anonymous", default=True),
        _json("patreon_status"),
        _flag("deleted"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "user_sessions",
        _id(),
        _user_id(),
        sa.Column("session_key", sa.String(length=64), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        _flag("deleted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_key", name="uq_user_sessions_session_key"),
    )

    op.create_table(
        "addresses",
        _id(),
        _user_id(),
        sa.Column("key", sa.String(length=40), nullable=False),
        _json("normalized"),
        _flag("deleted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "key", name="uq_addresses_user_key"),
    )

    for table_name in ("ecobee_tokens", "patreon_tokens"):
        op.create_table(
            table_name,
            _id(),
            _user_id(),
            sa.Column("access_token", sa.Text(), nullable=False),
            sa.Column("refresh_token", sa.Text(), nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            _flag("deleted"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", name=f"uq_{table_name}_user_id"),
        )

    op.create_table(
        "thermostat_groups",
        _id(),
        _user_id(),
        sa.Column("address_id", sa.BigInteger(), nullable=True),
        sa.Column("property_structure_type", sa.String(length=32), nullable=True),
        sa.Column("property_stories", sa.Integer(), nullable=True),
        sa.Column("property_square_feet", sa.Integer(), nullable=True),
        sa.Column("property_age", sa.Integer(), nullable=True),
        sa.Column("system_type_heat", sa.String(length=32), nullable=True),
        sa.Column("system_type_heat_auxiliary", sa.String(length=32), nullable=True),
        sa.Column("system_type_cool", sa.String(length=32), nullable=True),
        sa.Column("address_latitude", sa.Float(), nullable=True),
        sa.Column("address_longitude", sa.Float(), nullable=True),
        _flag("inactive"),
        _flag("deleted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["address_id"], ["addresses.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "address_id", name="uq_thermostat_groups_user_address"),
    )

    op.create_table(
        "ecobee_thermostats",
        _id(),
        _user_id(),
        sa.Column("guid", sa.String(length=40), nullable=False),
        sa.Column("identifier", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("utc_time", sa.DateTime(timezone=False), nullable=True),
        sa.Column("model_number", sa.String(length=64), nullable=True),
        *[_json(name) for name in ECOBEE_THERMOSTAT_JSON_COLUMNS],
        _flag("inactive"),
        _flag("deleted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "guid", name="uq_ecobee_thermostats_user_guid"),
    )
    op.create_index("ix_ecobee_thermostats_guid", "ecobee_thermostats", ["guid"])

    op.create_table(
        "thermostats",
        _id(),
        _user_id(),
        sa.Column("ecobee_thermostat_id", sa.BigInteger(), nullable=False),
        sa.Column("thermostat_group_id", sa.BigInteger(), nullable=True),
        sa.Column("address_id", sa.BigInteger(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("temperature_unit", sa.String(length=4), nullable=True),
        sa.Column("humidity", sa.Float(), nullable=True),
        sa.Column("first_connected", sa.DateTime(timezone=False), nullable=True),
        _json("property"),
        _json("filters"),
        _json("json_alerts", nullable=False),
        _json("system_type"),
        _flag("inactive"),
        _flag("deleted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ecobee_thermostat_id"], ["ecobee_thermostats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["thermostat_group_id"], ["thermostat_groups.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["address_id"], ["addresses.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ecobee_thermostat_id", name="uq_thermostats_ecobee_thermostat_id"),
    )

    op.create_table(
        "ecobee_sensors",
        _id(),
        _user_id(),
        sa.Column("ecobee_thermostat_id", sa.BigInteger(), nullable=False),
        sa.Column("identifier", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=True),
        sa.Column("code", sa.String(length=16), nullable=True),
        _flag("in_use"),
        _json("json_capability"),
        _flag("inactive"),
        _flag("deleted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ecobee_thermostat_id"], ["ecobee_thermostats.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "ecobee_thermostat_id",
            "identifier",
            name="uq_ecobee_sensors_thermostat_identifier",
        ),
    )

    op.create_table(
        "sensors",
        _id(),
        _user_id(),
        sa.Column("ecobee_sensor_id", sa.BigInteger(), nullable=False),
        sa.Column("thermostat_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=True),
        _flag("in_use"),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("humidity", sa.Float(), nullable=True),
        sa.Column("occupancy", sa.Boolean(), nullable=True),
        _flag("inactive"),
        _flag("deleted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ecobee_sensor_id"], ["ecobee_sensors.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["thermostat_id"], ["thermostats.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ecobee_sensor_id", name="uq_sensors_ecobee_sensor_id"),
    )

    op.create_table(
        "external_api_logs",
        _id(),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("request_method", sa.String(length=8), nullable=False),
        sa.Column("request_url", sa.Text(), nullable=False),
        sa.Column("response_status", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        _flag("error"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_external_api_logs_provider_created_at",
        "external_api_logs",
        ["provider", "created_at"],
    )

    op.create_table(
        "external_api_cache",
        _id(),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("key", sa.String(length=40), nullable=False),
        sa.Column("response_body", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "key", name="uq_external_api_cache_provider_key"),
    )


def downgrade() -> None:
    op.drop_table("external_api_cache")
    op.drop_index("ix_external_api_logs_provider_created_at", table_name="external_api_logs")
    op.drop_table("external_api_logs")
    op.drop_table("sensors")
    op.drop_table("ecobee_sensors")
    op.drop_table("thermostats")
    op.drop_index("ix_ecobee_thermostats_guid", table_name="ecobee_thermostats")
    op.drop_table("ecobee_thermostats")
    op.drop_table("thermostat_groups")
    op.drop_table("patreon_tokens")
    op.drop_table("ecobee_tokens")
    op.drop_table("addresses")
    op.drop_table("user_sessions")
    op.drop_table("users")
