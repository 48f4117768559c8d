# HTTP Helper for device connections
# aiohttp session configuration for ECP control calls and proxy forwarding

import aiohttp
import logging
from typing import Optional

logger = logging.getLogger(__name__)

def create_device_session(timeout_seconds: Optional[float] = 10) -> aiohttp.ClientSession:
    """
    Create aiohttp session for ECP calls against one device (always plain HTTP)
    A device handles few concurrent connections, so keep the pool small
    """
    connector = aiohttp.TCPConnector(
        limit_per_host=2,           # Max 2 connections per device
        ssl=False,                  # ECP is HTTP only
        force_close=True,           # Devices drop idle keep-alive sockets
        enable_cleanup_closed=True
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )

def create_proxy_session(timeout_seconds: Optional[float] = 30) -> aiohttp.ClientSession:
    """
    Create aiohttp session for transparent forwarding
    Headers and bodies pass through untouched, so no automatic decompression
    """
    connector = aiohttp.TCPConnector(
        ssl=False,
        limit=20,
        limit_per_host=5,
        force_close=True,
        enable_cleanup_closed=True
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds),
        auto_decompress=False,
        skip_auto_headers=("User-Agent", "Accept", "Accept-Encoding")
    )
