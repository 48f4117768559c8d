"""
Servers around the device client: uvicorn handles, emulator, reverse proxy
and the orchestrator that runs them together
"""

from .bridge_server import BridgeServer
from .emulator import Emulator, EmulatorServer, SsdpResponder, create_emulator_app
from .proxy import DeviceProxy
from .serving import ServerHandle

__all__ = [
    'BridgeServer', 'Emulator', 'EmulatorServer', 'SsdpResponder', 'create_emulator_app',
    'DeviceProxy', 'ServerHandle',
]
