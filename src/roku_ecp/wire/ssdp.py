"""
SSDP datagram codec: M-SEARCH requests and 200 OK responses
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..constants import SSDP_GROUP, SSDP_MX, SSDP_PORT, ST_ECP
from ..models import DiscoveryRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 1800


def _parse_headers(lines: Iterable[str]) -> Dict[str, str]:
    headers = {}
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep:
            continue
        headers[key.strip().lower()] = value.strip()
    return headers


def _parse_max_age(value: str) -> int:
    _, _, seconds = value.partition("=")
    try:
        return int(seconds.strip())
    except ValueError:
        return 0


def build_search_request(st: str = ST_ECP, mx: int = SSDP_MX) -> bytes:
    return "\r\n".join([
        "M-SEARCH * HTTP/1.1",
        f"HOST: {SSDP_GROUP}:{SSDP_PORT}",
        'MAN: "ssdp:discover"',
        f"ST: {st}",
        f"MX: {mx}",
        "",
        "",
    ]).encode("utf-8")


def parse_search_request(data: bytes) -> Optional[str]:
    """Return the requested ST of an M-SEARCH datagram, or None"""
    lines = data.decode("utf-8", errors="replace").splitlines()
    if not lines or not lines[0].startswith("M-SEARCH"):
        return None
    headers = _parse_headers(lines[1:])
    if "ssdp:discover" not in headers.get("man", "").lower():
        return None
    return headers.get("st", "")


def build_ssdp_response(location: str, st: str = ST_ECP, usn: str = "uuid:roku-ecp-emulator",
                        max_age: int = DEFAULT_MAX_AGE) -> bytes:
    return "\r\n".join([
        "HTTP/1.1 200 OK",
        f"CACHE-CONTROL: max-age={max_age}",
        f"ST: {st}",
        f"USN: {usn}",
        f"LOCATION: {location}",
        "",
        "",
    ]).encode("utf-8")


def parse_ssdp_response(data: bytes) -> Optional[DiscoveryRecord]:
    """Parse one response datagram; anything that is not a valid 200 reply yields None"""
    lines = data.decode("utf-8", errors="replace").splitlines()
    if not lines or "200" not in lines[0]:
        return None

    headers = _parse_headers(lines[1:])
    location = headers.get("location")
    usn = headers.get("usn")
    st = headers.get("st")
    if not location or not usn or not st:
        logger.debug(f"Dropping incomplete SSDP response: {lines[0]}")
        return None

    return DiscoveryRecord(
        location=location,
        usn=usn,
        st=st,
        cache_seconds=_parse_max_age(headers.get("cache-control", "")),
    )


def parse_ssdp_responses(datagrams: Iterable[bytes]) -> List[DiscoveryRecord]:
    """Parse and deduplicate by location; the first record for a location wins"""
    records: Dict[str, DiscoveryRecord] = {}
    for data in datagrams:
        record = parse_ssdp_response(data)
        if record and record.location not in records:
            records[record.location] = record
    return list(records.values())
