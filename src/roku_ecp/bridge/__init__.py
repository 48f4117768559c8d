"""
Bridge module: local HTTP command forwarding for one device
"""

from .main_api import CommandBridge, alias_resolver, has_valid_token
from .commands import CommandKind, CommandRequest
from .errors import BridgeError
from .state import BridgeEvent, BridgeStats, CommandQueue

__all__ = [
    'CommandBridge', 'alias_resolver', 'has_valid_token', 'CommandKind', 'CommandRequest',
    'BridgeError', 'BridgeEvent', 'BridgeStats', 'CommandQueue',
]
