"""
Shared data structures for the control and discovery protocols
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .constants import DEFAULT_ECP_PORT, TV_INPUT_APP_ID


@dataclass(frozen=True)
class DeviceAddress:
    """Control endpoint of one device"""
    host: str
    port: int = DEFAULT_ECP_PORT

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass
class AppDescriptor:
    """Installed app as reported by /query/apps or /query/active-app"""
    id: str
    version: Optional[str]
    name: str
    is_screensaver: bool = False
    # DeviceClient that produced this descriptor, if any
    owner: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        self.id = str(self.id)

    async def launch(self) -> None:
        if self.owner is not None:
            await self.owner.launch(self)

    async def store(self) -> None:
        if self.owner is not None:
            await self.owner.store(self)

    async def icon(self) -> Optional[bytes]:
        if self.owner is None:
            return None
        return await self.owner.icon(self)

    @property
    def icon_url(self) -> Optional[str]:
        if self.owner is None:
            return None
        return self.owner.icon_url(self)


@dataclass
class Channel:
    """Tuner channel from /query/tv-channels"""
    number: str
    name: str
    owner: Any = field(default=None, compare=False, repr=False)

    async def launch(self) -> None:
        if self.owner is None:
            return
        tv_app = AppDescriptor(TV_INPUT_APP_ID, None, "TV", owner=self.owner)
        await self.owner.launch(tv_app, {"ch": self.number})


@dataclass
class DeviceInfo:
    model_name: str
    model_num: str
    software_version: str
    serial_num: str
    user_device_name: str
    roku_type: str  # "TV", "Stick" or "Box"


@dataclass
class MediaPlayer:
    state: str
    app: AppDescriptor
    position: int
    duration: int


@dataclass(frozen=True)
class DiscoveryRecord:
    """One validated SSDP response"""
    location: str
    usn: str
    st: str
    cache_seconds: int = 0
