"""
Wire codec for ECP XML payloads and SSDP datagrams
"""

from .xml_codec import (
    XML_DECLARATION,
    TagBlock,
    deserialize_apps,
    deserialize_channels,
    escape_xml,
    extract_root_tag,
    extract_self_closing_tag_attrs,
    extract_tag_blocks,
    extract_tag_text,
    serialize_app,
    serialize_apps,
)
from .ssdp import (
    build_search_request,
    build_ssdp_response,
    parse_search_request,
    parse_ssdp_response,
    parse_ssdp_responses,
)

__all__ = [
    'TagBlock', 'deserialize_apps', 'deserialize_channels', 'escape_xml', 'extract_root_tag',
    'extract_self_closing_tag_attrs', 'extract_tag_blocks', 'extract_tag_text', 'serialize_app', 'serialize_apps', 'XML_DECLARATION',
    'build_search_request', 'build_ssdp_response', 'parse_search_request',
    'parse_ssdp_response', 'parse_ssdp_responses',
]
