"""
ECP device client - typed command surface over HTTP with bounded retry
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
from urllib.parse import quote_plus, urlsplit

import aiohttp
from yarl import URL

from ..constants import (
    DEFAULT_ECP_PORT,
    KEY_COMMANDS,
    KEY_STATES,
    NON_KEY_COMMANDS,
    SENSOR_TYPES,
    STORE_APP_ID,
    ST_ECP,
    TOUCH_ACTIONS,
)
from ..discovery import discover as discover_records
from ..exceptions import RokuHttpError, RokuNetworkError, RokuValidationError
from ..http_helper import create_device_session
from ..models import AppDescriptor, Channel, DeviceAddress, DeviceInfo, MediaPlayer
from ..wire import (
    deserialize_apps,
    deserialize_channels,
    extract_root_tag,
    extract_self_closing_tag_attrs,
    extract_tag_blocks,
    extract_tag_text,
)

logger = logging.getLogger(__name__)

Params = Mapping[str, Any]

_LEADING_NUMBER = re.compile(r"^\s*(-?\d+)")


def encode_param(value: str) -> str:
    """Percent-encode one value the way ECP literal keys expect (spaces become +)"""
    return quote_plus(value, safe="!'()*")


def _leading_int(value: Optional[str]) -> int:
    match = _LEADING_NUMBER.match(value or "")
    return int(match.group(1)) if match else 0


def _same_app_id(left: str, right: str) -> bool:
    try:
        return int(left) == int(right)
    except ValueError:
        return left == right


class DeviceClient:
    """HTTP client for one ECP device

    Every call goes to http://{host}:{port}{path} with a per-request timeout.
    Transport errors and non-2xx replies are retried `retries` times with a
    fixed delay; validation errors are raised immediately.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_ECP_PORT,
        timeout_seconds: float = 10,
        retries: int = 0,
        retry_delay_seconds: float = 0.2,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if retries < 0:
            raise RokuValidationError("retries must be >= 0")
        self.address = DeviceAddress(host, int(port))
        self.timeout_seconds = timeout_seconds
        self.retries = retries
        self.retry_delay_seconds = retry_delay_seconds
        self._own_session = session is None
        self._session = session
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Dict, **kwargs) -> "DeviceClient":
        device = config['device']
        client = config.get('client', {})
        return cls(
            device['host'],
            device.get('port', DEFAULT_ECP_PORT),
            timeout_seconds=client.get('timeout_seconds', 10),
            retries=client.get('retry_attempts', 0),
            retry_delay_seconds=client.get('retry_delay_seconds', 0.2),
            **kwargs
        )

    @classmethod
    def from_location(cls, location: str, **kwargs) -> "DeviceClient":
        url = urlsplit(location)
        return cls(url.hostname or "", url.port or DEFAULT_ECP_PORT, **kwargs)

    @classmethod
    async def discover(cls, timeout_seconds: float = 2, rounds: int = 1, st: str = ST_ECP,
                       **kwargs) -> List["DeviceClient"]:
        """Find devices on the LAN and return one client per responder"""
        records = await discover_records(timeout_seconds, rounds, st)
        return [cls.from_location(record.location, **kwargs) for record in records]

    @property
    def host(self) -> str:
        return self.address.host

    @property
    def port(self) -> int:
        return self.address.port

    @property
    def commands(self) -> List[str]:
        return sorted(KEY_COMMANDS)

    def __repr__(self) -> str:
        return f"<DeviceClient {self.host}:{self.port}>"

    async def __aenter__(self) -> "DeviceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        if self._own_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._own_session:
            self._session = None

    # ================== QUERIES ==================

    async def get_apps(self) -> List[AppDescriptor]:
        return deserialize_apps(await self._get("/query/apps"), owner=self)

    async def get_app(self, key: str) -> Optional[AppDescriptor]:
        """Installed app whose id or name equals `key`"""
        for app in await self.get_apps():
            if app.id == key or app.name == key:
                return app
        return None

    async def get_active_app(self) -> Optional[AppDescriptor]:
        apps = deserialize_apps(await self._get("/query/active-app"), owner=self)
        return apps[0] if apps else None

    async def get_current_app(self) -> Optional[AppDescriptor]:
        """Active app, or the screensaver when one is running"""
        xml = await self._get("/query/active-app")
        screensavers = extract_tag_blocks(xml, "screensaver")
        blocks = screensavers or extract_tag_blocks(xml, "app")
        if not blocks:
            return None
        block = blocks[0]
        return AppDescriptor(
            block.attrs.get("id", ""),
            block.attrs.get("version"),
            block.text,
            is_screensaver=bool(screensavers),
            owner=self,
        )

    async def get_tv_channels(self) -> List[Channel]:
        return deserialize_channels(await self._get("/query/tv-channels"), owner=self)

    async def get_device_info(self) -> DeviceInfo:
        xml = await self._get("/query/device-info")
        if extract_tag_text(xml, "is-tv") == "true":
            roku_type = "TV"
        elif extract_tag_text(xml, "is-stick") == "true":
            roku_type = "Stick"
        else:
            roku_type = "Box"
        version = extract_tag_text(xml, "software-version") or ""
        build = extract_tag_text(xml, "software-build") or ""
        return DeviceInfo(
            model_name=extract_tag_text(xml, "model-name") or "",
            model_num=extract_tag_text(xml, "model-number") or "",
            software_version=f"{version}.{build}",
            serial_num=extract_tag_text(xml, "serial-number") or "",
            user_device_name=extract_tag_text(xml, "user-device-name") or "",
            roku_type=roku_type,
        )

    async def get_media_player(self) -> MediaPlayer:
        xml = await self._get("/query/media-player")
        root = extract_root_tag(xml)
        if root is None:
            raise RokuValidationError("Invalid media player response")
        _, root_attrs = root

        plugin_id = extract_self_closing_tag_attrs(xml, "plugin").get("id")
        if not plugin_id:
            raise RokuValidationError("Media player plugin id missing")

        app = next((a for a in await self.get_apps() if _same_app_id(a.id, plugin_id)), None)
        if app is None:
            raise RokuValidationError(f"App {plugin_id} not found")

        return MediaPlayer(
            state=root_attrs.get("state", ""),
            app=app,
            position=_leading_int(extract_tag_text(xml, "position")),
            duration=_leading_int(extract_tag_text(xml, "duration")),
        )

    async def get_power_state(self) -> str:
        power_mode = extract_tag_text(await self._get("/query/device-info"), "power-mode")
        if not power_mode:
            return "Unknown"
        return "On" if power_mode == "PowerOn" else "Off"

    async def icon(self, app: AppDescriptor) -> bytes:
        return await self._get(f"/query/icon/{app.id}")

    def icon_url(self, app: AppDescriptor) -> str:
        return f"{self.address.base_url}/query/icon/{app.id}"

    async def probe(self, timeout_seconds: Optional[float] = None) -> None:
        """Single round trip to the device, no retries"""
        await self._request("GET", "/query/device-info", None, timeout_seconds or self.timeout_seconds)

    # ================== COMMANDS ==================

    async def launch(self, app: AppDescriptor, params: Optional[Params] = None) -> None:
        if app.owner is not None and app.owner is not self:
            raise RokuValidationError("this app belongs to another Roku")
        payload = dict(params or {})
        payload["contentID"] = app.id
        await self._post(f"/launch/{app.id}", payload)

    async def launch_channel(self, channel: Channel) -> None:
        await Channel(channel.number, channel.name, owner=self).launch()

    async def store(self, app: AppDescriptor) -> None:
        await self._post(f"/launch/{STORE_APP_ID}", {"contentID": app.id})

    async def input(self, params: Params) -> None:
        await self._post("/input", params)

    async def touch(self, x: float, y: float, op: str = "down") -> None:
        if op not in TOUCH_ACTIONS:
            raise RokuValidationError(f"{op} is not a valid touch operation")
        await self.input({"touch.0.x": x, "touch.0.y": y, "touch.0.op": op})

    async def sensor_input(self, sensor: str, x: float, y: float, z: float) -> None:
        if sensor not in SENSOR_TYPES:
            raise RokuValidationError(f"{sensor} is not a valid sensor")
        await self.input({f"{sensor}.x": x, f"{sensor}.y": y, f"{sensor}.z": z})

    async def literal(self, text: str) -> None:
        # One keypress per character; a failure leaves the device partially typed
        for char in text:
            await self._post(f"/keypress/{KEY_COMMANDS['literal']}_{encode_param(char)}")

    async def search(self, params: Mapping[str, str]) -> None:
        await self._post("/search/browse", {key.replace("_", "-"): value for key, value in params.items()})

    async def send_command(self, name: str, state: Optional[str] = None) -> None:
        if name in NON_KEY_COMMANDS:
            raise RokuValidationError(f"Use the {name} method instead")
        if name not in KEY_COMMANDS:
            raise RokuValidationError(f"Key not supported: {name}")
        if state is not None and state not in KEY_STATES:
            raise RokuValidationError(f"Invalid key state {state}")
        await self._post(f"/{state or 'keypress'}/{KEY_COMMANDS[name]}")

    # ================== KEYS ==================

    async def home(self, state: Optional[str] = None) -> None:
        await self.send_command("home", state)

    async def reverse(self, state: Optional[str] = None) -> None:
        await self.send_command("reverse", state)

    async def forward(self, state: Optional[str] = None) -> None:
        await self.send_command("forward", state)

    async def play(self, state: Optional[str] = None) -> None:
        await self.send_command("play", state)

    async def select(self, state: Optional[str] = None) -> None:
        await self.send_command("select", state)

    async def left(self, state: Optional[str] = None) -> None:
        await self.send_command("left", state)

    async def right(self, state: Optional[str] = None) -> None:
        await self.send_command("right", state)

    async def down(self, state: Optional[str] = None) -> None:
        await self.send_command("down", state)

    async def up(self, state: Optional[str] = None) -> None:
        await self.send_command("up", state)

    async def back(self, state: Optional[str] = None) -> None:
        await self.send_command("back", state)

    async def replay(self, state: Optional[str] = None) -> None:
        await self.send_command("replay", state)

    async def info(self, state: Optional[str] = None) -> None:
        await self.send_command("info", state)

    async def backspace(self, state: Optional[str] = None) -> None:
        await self.send_command("backspace", state)

    async def enter(self, state: Optional[str] = None) -> None:
        await self.send_command("enter", state)

    async def find_remote(self, state: Optional[str] = None) -> None:
        await self.send_command("find_remote", state)

    async def volume_down(self, state: Optional[str] = None) -> None:
        await self.send_command("volume_down", state)

    async def volume_up(self, state: Optional[str] = None) -> None:
        await self.send_command("volume_up", state)

    async def volume_mute(self, state: Optional[str] = None) -> None:
        await self.send_command("volume_mute", state)

    async def channel_up(self, state: Optional[str] = None) -> None:
        await self.send_command("channel_up", state)

    async def channel_down(self, state: Optional[str] = None) -> None:
        await self.send_command("channel_down", state)

    async def input_tuner(self, state: Optional[str] = None) -> None:
        await self.send_command("input_tuner", state)

    async def input_hdmi1(self, state: Optional[str] = None) -> None:
        await self.send_command("input_hdmi1", state)

    async def input_hdmi2(self, state: Optional[str] = None) -> None:
        await self.send_command("input_hdmi2", state)

    async def input_hdmi3(self, state: Optional[str] = None) -> None:
        await self.send_command("input_hdmi3", state)

    async def input_hdmi4(self, state: Optional[str] = None) -> None:
        await self.send_command("input_hdmi4", state)

    async def input_av1(self, state: Optional[str] = None) -> None:
        await self.send_command("input_av1", state)

    async def power(self, state: Optional[str] = None) -> None:
        await self.send_command("power", state)

    async def poweroff(self, state: Optional[str] = None) -> None:
        await self.send_command("poweroff", state)

    async def poweron(self, state: Optional[str] = None) -> None:
        await self.send_command("poweron", state)

    # ================== SENSORS ==================

    async def acceleration(self, x: float, y: float, z: float) -> None:
        await self.sensor_input("acceleration", x, y, z)

    async def magnetic(self, x: float, y: float, z: float) -> None:
        await self.sensor_input("magnetic", x, y, z)

    async def orientation(self, x: float, y: float, z: float) -> None:
        await self.sensor_input("orientation", x, y, z)

    async def rotation(self, x: float, y: float, z: float) -> None:
        await self.sensor_input("rotation", x, y, z)

    # ================== TRANSPORT ==================

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = create_device_session(self.timeout_seconds)
        return self._session

    async def _get(self, path: str) -> bytes:
        return await self._call("GET", path)

    async def _post(self, path: str, params: Optional[Params] = None) -> bytes:
        return await self._call("POST", path, params)

    async def _call(self, method: str, path: str, params: Optional[Params] = None) -> bytes:
        if not path.startswith("/"):
            raise RokuValidationError(f"Invalid path {path}")

        attempt = 0
        while True:
            try:
                return await self._request(method, path, params, self.timeout_seconds)
            except (RokuHttpError, RokuNetworkError) as e:
                if attempt >= self.retries:
                    raise
                attempt += 1
                logger.warning(f"{method} {path} failed: {e} (retry {attempt}/{self.retries})")
                await self._sleep(self.retry_delay_seconds)

    async def _request(self, method: str, path: str, params: Optional[Params],
                       timeout_seconds: float) -> bytes:
        # Paths are percent-encoded already; yarl must not requote them
        url = URL(f"{self.address.base_url}{path}", encoded=True)
        data = {key: str(value) for key, value in params.items()} if method == "POST" and params else None
        logger.debug(f"Roku {method} {path}")
        try:
            async with self._get_session().request(
                method, url, data=data, timeout=aiohttp.ClientTimeout(total=timeout_seconds)
            ) as response:
                body = await response.read()
                if not 200 <= response.status < 300:
                    raise RokuHttpError(response.status, body.decode("utf-8", errors="replace"))
                return body
        except asyncio.TimeoutError:
            raise RokuNetworkError("Request timed out") from None
        except (aiohttp.ClientError, OSError) as e:
            raise RokuNetworkError(str(e) or "Network error") from e
