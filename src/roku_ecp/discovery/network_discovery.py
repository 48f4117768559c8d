"""
SSDP multicast discovery for ECP devices
"""

import asyncio
import logging
import socket
import time
from typing import Callable, Dict, List, Optional, Tuple

from ..constants import SSDP_GROUP, SSDP_PORT, ST_ECP
from ..models import DiscoveryRecord
from ..wire.ssdp import build_search_request, parse_ssdp_responses

logger = logging.getLogger(__name__)

HostAndPort = Tuple[str, int]


class _SearchProtocol(asyncio.DatagramProtocol):
    """Collects every datagram that arrives on the search socket"""

    def __init__(self, on_datagram: Callable[[bytes, HostAndPort], None]):
        self._on_datagram = on_datagram

    def datagram_received(self, data: bytes, addr: HostAndPort) -> None:
        self._on_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.debug(f"SSDP socket error: {exc}")


class NetworkDiscovery:
    """Sends M-SEARCH datagrams and collects unique responders

    Rounds run one after another, each on a fresh socket, so one call takes
    roughly rounds * timeout_seconds. Socket failures end the round quietly.
    """

    def __init__(self, config: Optional[dict] = None, group: HostAndPort = (SSDP_GROUP, SSDP_PORT)):
        config = config or {}
        self.timeout_seconds = config.get('timeout_seconds', 2)
        self.rounds = config.get('rounds', 1)
        self.service_type = config.get('service_type', ST_ECP)
        self.group = group

    async def discover(self, timeout_seconds: Optional[float] = None, rounds: Optional[int] = None,
                       st: Optional[str] = None) -> List[DiscoveryRecord]:
        timeout_seconds = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        rounds = self.rounds if rounds is None else rounds
        st = st or self.service_type

        start_time = time.time()
        records: Dict[str, DiscoveryRecord] = {}
        for round_number in range(rounds):
            found = await self._search_round(timeout_seconds, st)
            for record in found:
                records.setdefault(record.location, record)
            logger.debug(f"SSDP round {round_number + 1}/{rounds}: {len(found)} responders")

        logger.info(f"Discovery found {len(records)} device(s) for {st} in {time.time() - start_time:.1f}s")
        return list(records.values())

    async def _search_round(self, timeout_seconds: float, st: str) -> List[DiscoveryRecord]:
        loop = asyncio.get_running_loop()
        datagrams: List[bytes] = []
        transport = None
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _SearchProtocol(lambda data, addr: datagrams.append(data)),
                local_addr=("0.0.0.0", 0),
                family=socket.AF_INET,
            )
            sock = transport.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            transport.sendto(build_search_request(st), self.group)
            await asyncio.sleep(timeout_seconds)
        except OSError as e:
            logger.warning(f"SSDP search round failed: {e}")
        finally:
            if transport is not None:
                transport.close()

        return parse_ssdp_responses(datagrams)


async def discover(timeout_seconds: float = 2, rounds: int = 1, st: str = ST_ECP) -> List[DiscoveryRecord]:
    """Discover devices answering to service type `st` on the standard SSDP group"""
    return await NetworkDiscovery().discover(timeout_seconds, rounds, st)
