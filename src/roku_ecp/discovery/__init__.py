"""
Discovery module for ECP devices on the local network
"""

from .network_discovery import NetworkDiscovery, discover

__all__ = ['NetworkDiscovery', 'discover']
