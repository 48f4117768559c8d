"""
Device module: ECP control client
"""

from .client import DeviceClient, encode_param

__all__ = ['DeviceClient', 'encode_param']
