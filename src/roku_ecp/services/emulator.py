"""
ECP device emulator

An in-process stand-in for a real device: the same HTTP query/command
surface plus an SSDP responder that points searchers at the emulator.
Command posts are accepted and recorded but never interpreted, except
/launch which moves the active-app pointer.
"""

import asyncio
import logging
import socket
import struct
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl

from fastapi import FastAPI, Request, Response

from ..constants import DEFAULT_ECP_PORT, SSDP_GROUP, SSDP_PORT, ST_ECP
from ..models import AppDescriptor
from ..wire import XML_DECLARATION, build_ssdp_response, escape_xml, parse_search_request, serialize_app, serialize_apps
from .serving import ServerHandle

logger = logging.getLogger(__name__)

XML_MEDIA_TYPE = "application/xml"
EMULATOR_USN = "uuid:roku-ecp-emulator"
SEARCH_TARGETS = (ST_ECP, "ssdp:all")

DEFAULT_APPS = (
    ("1", "1.0", "Hulu Plus"),
    ("2", "2.0", "TWiT"),
    ("3", "3.0", "Whisky Media"),
    ("4", "4.0", "Netflix"),
)

DEVICE_INFO = {
    "model-name": "Emulated Roku",
    "model-number": "0000X",
    "software-version": "1.0",
    "software-build": "000",
    "serial-number": "EMULATOR",
    "user-device-name": "Roku Emulator",
    "is-tv": "false",
    "is-stick": "false",
    "power-mode": "PowerOn",
}


def get_local_address() -> str:
    """Best-effort LAN address of this host, loopback when there is none"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent; connect() only selects the outgoing interface
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


class Emulator:
    """Mutable device state: app roster, active app, icons and received commands"""

    def __init__(self, apps: Optional[Iterable[AppDescriptor]] = None, device_info: Optional[Dict[str, str]] = None):
        if apps is None:
            apps = [AppDescriptor(app_id, version, name) for app_id, version, name in DEFAULT_APPS]
        self.apps: List[AppDescriptor] = list(apps)
        self.active_app: Optional[AppDescriptor] = self.apps[0] if self.apps else None
        self.device_info = dict(DEVICE_INFO, **(device_info or {}))
        self.icons: Dict[str, bytes] = {}
        self.history: List[Tuple[str, str, Dict[str, str]]] = []

    def list_apps(self) -> List[AppDescriptor]:
        return list(self.apps)

    def list_apps_xml(self) -> str:
        return serialize_apps(self.apps)

    def add_app(self, app: AppDescriptor) -> None:
        self.apps.append(app)

    def find_app(self, app_id: str) -> Optional[AppDescriptor]:
        return next((app for app in self.apps if app.id == str(app_id)), None)

    def launch_app(self, app_id: str) -> bool:
        """Make `app_id` the active app; unknown ids leave the pointer alone"""
        app = self.find_app(app_id)
        if app is None:
            logger.debug(f"Emulator ignoring launch of unknown app {app_id}")
            return False
        self.active_app = app
        return True

    def get_active_app(self) -> Optional[AppDescriptor]:
        return self.active_app

    def active_app_xml(self) -> str:
        inner = serialize_app(self.active_app) if self.active_app else "<app>Roku</app>"
        return f"{XML_DECLARATION}<active-app>{inner}</active-app>"

    def set_icon(self, app_id: str, data: bytes) -> None:
        self.icons[str(app_id)] = data

    def get_icon(self, app_id: str) -> bytes:
        return self.icons.get(str(app_id), b"")

    def device_info_xml(self) -> str:
        fields = "".join(f"<{tag}>{escape_xml(value)}</{tag}>" for tag, value in self.device_info.items())
        return f"{XML_DECLARATION}<device-info>{fields}</device-info>"

    def record(self, method: str, path: str, form: Optional[Dict[str, str]] = None) -> None:
        self.history.append((method, path, dict(form or {})))


def create_emulator_app(emulator: Emulator) -> FastAPI:
    """FastAPI app exposing the device HTTP surface for one Emulator"""
    app = FastAPI(title="ECP Device Emulator", docs_url=None, redoc_url=None, openapi_url=None)

    def xml_response(body: str) -> Response:
        return Response(content=body.encode("utf-8"), media_type=XML_MEDIA_TYPE)

    def raw_path(request: Request) -> str:
        # History keeps the path as sent, percent-escapes included
        raw = request.scope.get("raw_path")
        return raw.decode("latin-1") if raw else request.url.path

    async def read_form(request: Request) -> Dict[str, str]:
        body = (await request.body()).decode("utf-8", errors="replace")
        return dict(parse_qsl(body, keep_blank_values=True))

    @app.get("/query/apps")
    async def query_apps():
        return xml_response(emulator.list_apps_xml())

    @app.get("/query/active-app")
    async def query_active_app():
        return xml_response(emulator.active_app_xml())

    @app.get("/query/device-info")
    async def query_device_info():
        return xml_response(emulator.device_info_xml())

    @app.get("/query/icon/{app_id}")
    async def query_icon(app_id: str):
        return Response(content=emulator.get_icon(app_id), media_type="image/png")

    @app.post("/launch/{app_id}")
    async def launch(app_id: str, request: Request):
        emulator.record("POST", raw_path(request), await read_form(request))
        emulator.launch_app(app_id)
        return Response(status_code=200)

    @app.post("/keypress/{key}")
    @app.post("/keydown/{key}")
    @app.post("/keyup/{key}")
    async def key(key: str, request: Request):
        emulator.record("POST", raw_path(request))
        return Response(status_code=200)

    @app.post("/input")
    @app.post("/search/browse")
    async def accept_form(request: Request):
        emulator.record("POST", raw_path(request), await read_form(request))
        return Response(status_code=200)

    return app


class _SsdpResponderProtocol(asyncio.DatagramProtocol):

    def __init__(self, location: Callable[[], str]):
        self._location = location
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data: bytes, addr) -> None:
        st = parse_search_request(data)
        if st not in SEARCH_TARGETS:
            return
        logger.debug(f"Answering SSDP search for {st} from {addr[0]}")
        self.transport.sendto(build_ssdp_response(self._location(), ST_ECP, EMULATOR_USN), addr)

    def error_received(self, exc: Exception) -> None:
        logger.debug(f"SSDP responder socket error: {exc}")


class SsdpResponder:
    """Answers M-SEARCH datagrams for the ECP service type

    Binds the SSDP port and joins the multicast group by default. Failing to
    do either disables the responder; start() then returns False.
    """

    def __init__(self, location: Callable[[], str], host: str = "0.0.0.0", port: int = SSDP_PORT,
                 join_group: bool = True):
        self.location = location
        self.host = host
        self.port = port
        self.join_group = join_group
        self._transport = None

    @property
    def running(self) -> bool:
        return self._transport is not None

    async def start(self) -> bool:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            if self.join_group:
                membership = struct.pack("4s4s", socket.inet_aton(SSDP_GROUP), socket.inet_aton("0.0.0.0"))
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
            sock.setblocking(False)
            self._transport, _ = await asyncio.get_running_loop().create_datagram_endpoint(
                lambda: _SsdpResponderProtocol(self.location), sock=sock
            )
        except OSError as e:
            sock.close()
            logger.warning(f"SSDP responder disabled: {e}")
            return False

        self.port = self._transport.get_extra_info("sockname")[1]
        logger.info(f"SSDP responder listening on {self.host}:{self.port}")
        return True

    def stop(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None


class EmulatorServer:
    """Emulator HTTP server plus its SSDP responder"""

    def __init__(self, emulator: Optional[Emulator] = None, host: str = "0.0.0.0", port: int = DEFAULT_ECP_PORT,
                 ssdp: bool = True, ssdp_host: str = "0.0.0.0", ssdp_port: int = SSDP_PORT,
                 join_group: bool = True, advertise_host: Optional[str] = None):
        self.emulator = emulator or Emulator()
        self.app = create_emulator_app(self.emulator)
        self.http = ServerHandle(self.app, host, port, name="Emulator")
        self.advertise_host = advertise_host
        self.responder: Optional[SsdpResponder] = None
        if ssdp:
            self.responder = SsdpResponder(self.location, ssdp_host, ssdp_port, join_group)

    @classmethod
    def from_config(cls, config: Dict) -> "EmulatorServer":
        emulator_config = config.get('emulator', {})
        return cls(
            host=emulator_config.get('host', "0.0.0.0"),
            port=emulator_config.get('port', DEFAULT_ECP_PORT),
            ssdp=emulator_config.get('ssdp', True),
        )

    @property
    def port(self) -> int:
        return self.http.port

    def location(self) -> str:
        return f"http://{self.advertise_host or get_local_address()}:{self.port}/"

    async def start(self):
        await self.http.start()
        if self.responder is not None:
            await self.responder.start()

    async def wait(self):
        await self.http.wait()

    async def stop(self):
        if self.responder is not None:
            self.responder.stop()
        await self.http.stop()
