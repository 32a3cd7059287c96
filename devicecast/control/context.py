"""
Session-level context shared by the mapper, the session and the client:
platform, screen, device info, session configuration and ADB tunnel info.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from devicecast.control.constants import ADB_SHELL_COMMAND_TEMPLATE


class DevicePlatform(StrEnum):
    IOS = "ios"
    ANDROID = "android"


class ProxyMode(StrEnum):
    INTERCEPT = "intercept"


class ScreenBounds(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    width: float
    height: float
    device_pixel_ratio: float | None = Field(default=None, alias="devicePixelRatio")

    @property
    def ratio(self) -> float:
        return self.device_pixel_ratio or 1


class DeviceInfo(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str | None = None
    name: str | None = None
    os_version: str | None = Field(default=None, alias="osVersion")
    orientation: str | None = None
    screen: ScreenBounds | None = None

    def to_str(self) -> str:
        screen = f"{self.screen.width}x{self.screen.height}" if self.screen else "unknown"
        return f"{self.name or self.type} ({self.os_version}), screen {screen}"


class AppInfo(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    platform: DevicePlatform | None = None
    bundle: str | None = None
    public_key: str | None = Field(default=None, alias="publicKey")


class SessionConfig(BaseModel):
    """
    Snapshot of the options a session runs with.

    Unknown keys are kept so the remote can introduce options without a client
    release. Updates produce a new instance through `merged`.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    platform: DevicePlatform | None = None
    device: str | None = None
    os_version: str | None = Field(default=None, alias="osVersion")
    scale: float | str | None = None
    autoplay: bool | None = None
    debug: bool | None = None
    record: bool | None = None
    enable_adb: bool | None = Field(default=None, alias="enableAdb")
    proxy: str | None = None
    language: str | None = None
    location: list[float] | None = None
    public_key: str | None = Field(default=None, alias="publicKey")
    orientation: str | None = None
    params: dict[str, Any] | None = None

    def merged(self, **update: Any) -> "SessionConfig":
        data = self.to_payload()
        data.update(SessionConfig.model_validate(update).to_payload())
        return SessionConfig.model_validate(data)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AdbForward(BaseModel):
    destination: str
    port: int


class AdbConnectionInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    hostname: str
    port: int
    user: str
    hash: str | None = None
    forwards: list[AdbForward] = []
    command: str | None = None

    def with_command(self) -> "AdbConnectionInfo":
        return self.model_copy(update={"command": build_adb_shell_command(self)})


def build_adb_shell_command(info: AdbConnectionInfo) -> str | None:
    if not info.forwards:
        return None
    forward = info.forwards[0]
    return ADB_SHELL_COMMAND_TEMPLATE.format(
        port=info.port,
        user=info.user,
        hostname=info.hostname,
        destination=forward.destination,
        forward_port=forward.port,
    )


class SessionInfo(BaseModel):
    """Identity of a session granted by the remote service."""

    model_config = ConfigDict(extra="allow")

    path: str
    token: str | None = None
