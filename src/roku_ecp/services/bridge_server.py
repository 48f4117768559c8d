"""
Bridge Server - Main orchestrator for the bridge, proxy and emulator
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..bridge import CommandBridge
from ..config_loader import DEFAULT_CONFIG_PATH, load_config, setup_logging
from ..device import DeviceClient
from ..discovery import NetworkDiscovery
from .emulator import EmulatorServer
from .proxy import DeviceProxy
from .serving import ServerHandle

logger = logging.getLogger(__name__)

class BridgeServer:
    """Runs the command bridge for one device, plus the optional proxy and emulator"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, config: Optional[Dict] = None):
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config)

        self.discovery = NetworkDiscovery(self.config['discovery'])
        self.client: Optional[DeviceClient] = None
        self.bridge: Optional[CommandBridge] = None
        self.emulator: Optional[EmulatorServer] = None
        self.servers: List = []
        self.running = False
        self._stopping: Optional[asyncio.Future] = None

    async def start(self):
        """Start all configured servers and block until they exit"""
        logger.info("Starting ECP command bridge...")

        try:
            # The emulator comes first so the bridge can target it
            if self.config['emulator']['enabled']:
                self.emulator = EmulatorServer.from_config(self.config)
                await self.emulator.start()
                self.servers.append(self.emulator)

            await self._resolve_device()

            self.client = DeviceClient.from_config(self.config)
            self.bridge = CommandBridge(self.client, self.config)
            bridge_config = self.config['bridge']
            bridge_handle = ServerHandle(self.bridge.app, bridge_config['host'], bridge_config['port'],
                                         name="Command bridge")
            await bridge_handle.start()
            self.servers.append(bridge_handle)

            if self.config['proxy']['enabled']:
                proxy = DeviceProxy.from_config(self.config)
                proxy_config = self.config['proxy']
                proxy_handle = ServerHandle(proxy.app, proxy_config['host'], proxy_config['port'],
                                            name="Reverse proxy")
                await proxy_handle.start()
                self.servers.append(proxy_handle)

            self.running = True
            logger.info(f"All services started ({len(self.servers)} servers), device {self.client.host}:{self.client.port}")

            await asyncio.gather(*(server.wait() for server in self.servers))

        except Exception as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def stop(self):
        """Stop all servers gracefully; concurrent callers share one shutdown"""
        if self._stopping is None:
            if not self.servers and self.client is None:
                return
            self._stopping = asyncio.ensure_future(self._shutdown())
        try:
            await self._stopping
        finally:
            self._stopping = None

    async def _shutdown(self):
        logger.info("Stopping server...")
        self.running = False
        servers, self.servers = self.servers, []
        client, self.client = self.client, None

        # Reverse start order: proxy, bridge, emulator
        for server in reversed(servers):
            await server.stop()

        if client is not None:
            await client.close()

        if self.bridge is not None:
            logger.info(f"Bridge handled {self.bridge.stats.total} requests")
        logger.info("Server stopped")

    async def _resolve_device(self):
        """Fill device.host from the first discovery responder when it is not configured"""
        device = self.config['device']
        if device.get('host'):
            return

        if self.emulator is not None:
            device['host'] = "127.0.0.1"
            device['port'] = self.emulator.port
            logger.info(f"Using the local emulator on port {self.emulator.port}")
            return

        records = await self.discovery.discover()
        if not records:
            raise RuntimeError("No device found via discovery and device.host is not configured")

        found = DeviceClient.from_location(records[0].location)
        device['host'] = found.host
        device['port'] = found.port
        logger.info(f"Discovered device at {found.host}:{found.port} ({records[0].usn})")
