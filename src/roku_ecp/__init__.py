"""
roku_ecp - control, discovery, bridging and emulation for ECP streaming devices
"""

from .device import DeviceClient
from .discovery import NetworkDiscovery, discover
from .exceptions import RokuError, RokuHttpError, RokuNetworkError, RokuValidationError
from .models import AppDescriptor, Channel, DeviceAddress, DeviceInfo, DiscoveryRecord, MediaPlayer

__version__ = "1.0.0"

__all__ = [
    'DeviceClient', 'NetworkDiscovery', 'discover',
    'RokuError', 'RokuHttpError', 'RokuNetworkError', 'RokuValidationError',
    'AppDescriptor', 'Channel', 'DeviceAddress', 'DeviceInfo', 'DiscoveryRecord', 'MediaPlayer',
]
