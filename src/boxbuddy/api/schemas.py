"""
Pydantic schemas for the lockbox command API.

Defines request/response models for devices, access codes and audit entries.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from boxbuddy.lockbox.types import AccessCode, AuditEntry, Device, DeviceVariant


class DeviceStatusOut(BaseModel):
    """Physical status fields of a lockbox."""
    locked: bool = Field(description="True when the bolt is engaged")
    door_open: bool = Field(description="True when the door sensor reports open")
    battery_pct: float = Field(ge=0, le=100, description="Battery charge in percent")
    temp_c: Optional[float] = Field(None, description="Cooling target, null when cooling is off")


class DeviceOut(BaseModel):
    """Device with status, alerts and last telemetry time."""
    id: str = Field(description="Device identifier")
    name: str = Field(description="Display label")
    variant: DeviceVariant = Field(description="standard, shared or cooling")
    online: bool = Field(description="Connectivity flag")
    status: DeviceStatusOut
    last_seen_at: int = Field(description="Epoch ms of the last mutation or telemetry tick")
    alerts: List[str] = Field(default_factory=list, description="Active alert kinds")

    @classmethod
    def from_device(cls, device: Device) -> "DeviceOut":
        return cls(
            id=device.id,
            name=device.name,
            variant=device.variant,
            online=device.online,
            status=DeviceStatusOut(
                locked=device.status.locked,
                door_open=device.status.door_open,
                battery_pct=device.status.battery_pct,
                temp_c=device.status.temp_c,
            ),
            last_seen_at=device.last_seen_at,
            alerts=sorted(alert.value for alert in device.alerts),
        )


class DeviceCreateRequest(BaseModel):
    """Request payload for adding a device."""
    variant: DeviceVariant = Field(description="Device variant to add")
    name: Optional[str] = Field(None, description="Optional display label")

    class Config:
        json_schema_extra = {"example": {"variant": "cooling", "name": "Kitchen Box"}}


class ActorRequest(BaseModel):
    """Optional acting user for audit attribution."""
    actor: Optional[str] = Field(None, description="Display name of the acting user")


class SimulationPatch(BaseModel):
    """Sensor overrides; only fields present in the payload are applied."""
    online: Optional[bool] = None
    door_open: Optional[bool] = None
    battery_pct: Optional[float] = None
    temp_c: Optional[float] = None

    class Config:
        json_schema_extra = {"example": {"door_open": True, "battery_pct": 12.5}}


class CodeCreateRequest(BaseModel):
    """Request payload for issuing an access code."""
    hours: Optional[float] = Field(None, gt=0, description="Lifetime in hours (default from config)")
    note: str = Field("", description="Free-text annotation, e.g. carrier name")
    issuer: Optional[str] = Field(None, description="Issuer display name")

    class Config:
        json_schema_extra = {"example": {"hours": 4, "note": "DHL delivery"}}


class CodeOut(BaseModel):
    """Access code and its lifecycle state."""
    id: str
    device_id: str
    code: str = Field(description="Four hyphen-joined groups of two characters")
    expires_at: int = Field(description="Epoch ms after which the code expires")
    note: str
    created_by: str
    used_at: Optional[int] = None
    expired: bool
    state: str = Field(description="active, expired or used")

    @classmethod
    def from_code(cls, code: AccessCode) -> "CodeOut":
        return cls(
            id=code.id,
            device_id=code.device_id,
            code=code.code,
            expires_at=code.expires_at,
            note=code.note,
            created_by=code.created_by,
            used_at=code.used_at,
            expired=code.expired,
            state=code.state.value,
        )


class RedeemResponse(BaseModel):
    """Result of a redeem attempt; ``code`` is null when it was a no-op."""
    redeemed: bool
    code: Optional[CodeOut] = None


class AuditEntryOut(BaseModel):
    """Single audit log entry."""
    id: str
    kind: str
    text: str
    timestamp: int

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryOut":
        return cls(id=entry.id, kind=entry.kind.value, text=entry.text, timestamp=entry.timestamp)


class SystemEventRequest(BaseModel):
    """Free-text system notice, e.g. a firmware update announcement."""
    text: str = Field(min_length=1)
