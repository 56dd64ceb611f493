from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from beestat.db.base import Base, IdType, JsonType


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    anonymous: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true", nullable=False)
    patreon_status: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)

    sessions: Mapped[list["UserSession"]] = relationship(back_populates="user")


class UserSession(TimestampMixin, Base):
    __tablename__ = "user_sessions"
    __table_args__ = (UniqueConstraint("session_key", name="uq_user_sessions_session_key"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_key: Mapped[str] = mapped_column(String(64), nullable=False)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)

    user: Mapped[User] = relationship(back_populates="sessions")


class Address(TimestampMixin, Base):
    __tablename__ = "addresses"
    __table_args__ = (UniqueConstraint("user_id", "key", name="uq_addresses_user_key"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    key: Mapped[str] = mapped_column(String(40), nullable=False)
    normalized: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)

    @property
    def latitude(self) -> float | None:
        return _metadata_coordinate(self.normalized, "latitude")

    @property
    def longitude(self) -> float | None:
        return _metadata_coordinate(self.normalized, "longitude")


class EcobeeToken(TimestampMixin, Base):
    __tablename__ = "ecobee_tokens"
    __table_args__ = (UniqueConstraint("user_id", name="uq_ecobee_tokens_user_id"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)


class PatreonToken(TimestampMixin, Base):
    __tablename__ = "patreon_tokens"
    __table_args__ = (UniqueConstraint("user_id", name="uq_patreon_tokens_user_id"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)


class ThermostatGroup(TimestampMixin, Base):
    __tablename__ = "thermostat_groups"
    __table_args__ = (UniqueConstraint("user_id", "address_id", name="uq_thermostat_groups_user_address"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    address_id: Mapped[int | None] = mapped_column(
        IdType,
        ForeignKey("addresses.id", ondelete="SET NULL"),
        nullable=True,
    )
    property_structure_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    property_stories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    property_square_feet: Mapped[int | None] = mapped_column(Integer, nullable=True)
    property_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    system_type_heat: Mapped[str | None] = mapped_column(String(32), nullable=True)
    system_type_heat_auxiliary: Mapped[str | None] = mapped_column(String(32), nullable=True)
    system_type_cool: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    inactive: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)


class EcobeeThermostat(TimestampMixin, Base):
    __tablename__ = "ecobee_thermostats"
    __table_args__ = (
        UniqueConstraint("user_id", "guid", name="uq_ecobee_thermostats_user_guid"),
        Index("ix_ecobee_thermostats_guid", "guid"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    guid: Mapped[str] = mapped_column(String(40), nullable=False)
    identifier: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    utc_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    model_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    json_runtime: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_extended_runtime: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_electricity: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_settings: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_location: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_program: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_events: Mapped[list[Any] | None] = mapped_column(JsonType, nullable=True)
    json_device: Mapped[list[Any] | None] = mapped_column(JsonType, nullable=True)
    json_technician: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_utility: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_management: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_alerts: Mapped[list[Any] | None] = mapped_column(JsonType, nullable=True)
    json_weather: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_house_details: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_oem_cfg: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_equipment_status: Mapped[list[str] | None] = mapped_column(JsonType, nullable=True)
    json_notification_settings: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_privacy: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_version: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_remote_sensors: Mapped[list[Any] | None] = mapped_column(JsonType, nullable=True)
    json_audio: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    inactive: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)


class Thermostat(TimestampMixin, Base):
    __tablename__ = "thermostats"
    __table_args__ = (
        UniqueConstraint("ecobee_thermostat_id", name="uq_thermostats_ecobee_thermostat_id"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    ecobee_thermostat_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("ecobee_thermostats.id", ondelete="CASCADE"),
        nullable=False,
    )
    thermostat_group_id: Mapped[int | None] = mapped_column(
        IdType,
        ForeignKey("thermostat_groups.id", ondelete="SET NULL"),
        nullable=True,
    )
    address_id: Mapped[int | None] = mapped_column(
        IdType,
        ForeignKey("addresses.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    temperature_unit: Mapped[str | None] = mapped_column(String(4), nullable=True)
    humidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    first_connected: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    property: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    filters: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    json_alerts: Mapped[list[Any]] = mapped_column(JsonType, nullable=False, default=list)
    system_type: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    inactive: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)


class EcobeeSensor(TimestampMixin, Base):
    __tablename__ = "ecobee_sensors"
    __table_args__ = (
        UniqueConstraint(
            "ecobee_thermostat_id",
            "identifier",
            name="uq_ecobee_sensors_thermostat_identifier",
        ),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    ecobee_thermostat_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("ecobee_thermostats.id", ondelete="CASCADE"),
        nullable=False,
    )
    identifier: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    in_use: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    json_capability: Mapped[list[Any] | None] = mapped_column(JsonType, nullable=True)
    inactive: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)


class Sensor(TimestampMixin, Base):
    __tablename__ = "sensors"
    __table_args__ = (UniqueConstraint("ecobee_sensor_id", name="uq_sensors_ecobee_sensor_id"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    ecobee_sensor_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("ecobee_sensors.id", ondelete="CASCADE"),
        nullable=False,
    )
    thermostat_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("thermostats.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    in_use: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    humidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    occupancy: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    inactive: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)


class ExternalApiLog(Base):
    __tablename__ = "external_api_logs"
    __table_args__ = (Index("ix_external_api_logs_provider_created_at", "provider", "created_at"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(IdType, nullable=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    request_method: Mapped[str] = mapped_column(String(8), nullable=False)
    request_url: Mapped[str] = mapped_column(Text, nullable=False)
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    error: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class ExternalApiCache(TimestampMixin, Base):
    __tablename__ = "external_api_cache"
    __table_args__ = (UniqueConstraint("provider", "key", name="uq_external_api_cache_provider_key"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    key: Mapped[str] = mapped_column(String(40), nullable=False)
    response_body: Mapped[str] = mapped_column(Text, nullable=False)


def _metadata_coordinate(normalized: dict[str, Any] | None, name: str) -> float | None:
    if not isinstance(normalized, dict):
        return None
    metadata = normalized.get("metadata")
    if not isinstance(metadata, dict):
        return None
    value = metadata.get(name)
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
