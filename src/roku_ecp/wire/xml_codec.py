"""
XML helpers for ECP query responses
Lookups are tolerant: malformed or absent input reads as "not found"
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union

from ..models import AppDescriptor, Channel

logger = logging.getLogger(__name__)

XmlInput = Union[str, bytes, None]

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


class TagBlock(NamedTuple):
    """Attributes and trimmed text content of one element"""
    attrs: Dict[str, str]
    text: str


def _parse(xml: XmlInput) -> Optional[ET.Element]:
    if not xml:
        return None
    try:
        return ET.fromstring(xml)
    except ET.ParseError as e:
        logger.debug(f"Unparseable XML payload: {e}")
        return None


def _tag_name(element: ET.Element) -> str:
    # Drop any namespace prefix
    return str(element.tag).rsplit("}", 1)[-1].lower()


def _text_of(element: ET.Element) -> str:
    return "".join(element.itertext()).strip()


def _iter_blocks(element: ET.Element, tag: str) -> Iterator[ET.Element]:
    """Outermost elements named `tag`, in document order"""
    if _tag_name(element) == tag:
        yield element
        return
    for child in element:
        yield from _iter_blocks(child, tag)


def _find_first(root: Optional[ET.Element], tag: str) -> Optional[ET.Element]:
    if root is None:
        return None
    tag = tag.lower()
    for element in root.iter():
        if _tag_name(element) == tag:
            return element
    return None


def extract_tag_text(xml: XmlInput, tag: str) -> Optional[str]:
    """Trimmed text of the first `tag` element, or None"""
    element = _find_first(_parse(xml), tag)
    if element is None:
        return None
    return _text_of(element)


def extract_tag_blocks(xml: XmlInput, tag: str) -> List[TagBlock]:
    root = _parse(xml)
    if root is None:
        return []
    return [TagBlock(dict(el.attrib), _text_of(el)) for el in _iter_blocks(root, tag.lower())]


def extract_self_closing_tag_attrs(xml: XmlInput, tag: str) -> Dict[str, str]:
    root = _parse(xml)
    if root is None:
        return {}
    tag = tag.lower()
    for element in root.iter():
        if _tag_name(element) == tag and len(element) == 0 and not (element.text or "").strip():
            return dict(element.attrib)
    return {}


def extract_root_tag(xml: XmlInput) -> Optional[Tuple[str, Dict[str, str]]]:
    root = _parse(xml)
    if root is None:
        return None
    return _tag_name(root), dict(root.attrib)


def escape_xml(value: Any) -> str:
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def deserialize_apps(xml: XmlInput, owner: Any = None) -> List[AppDescriptor]:
    return [
        AppDescriptor(block.attrs.get("id", ""), block.attrs.get("version"), block.text, owner=owner)
        for block in extract_tag_blocks(xml, "app")
    ]


def serialize_app(app: AppDescriptor, tag: str = "app") -> str:
    attrs = f' id="{escape_xml(app.id)}"'
    if app.version is not None:
        attrs += f' version="{escape_xml(app.version)}"'
    return f"<{tag}{attrs}>{escape_xml(app.name)}</{tag}>"


def serialize_apps(apps: Iterable[AppDescriptor]) -> str:
    entries = "".join(serialize_app(app) for app in apps)
    return f"{XML_DECLARATION}<apps>{entries}</apps>"


def deserialize_channels(xml: XmlInput, owner: Any = None) -> List[Channel]:
    root = _parse(xml)
    if root is None:
        return []
    channels = []
    for element in _iter_blocks(root, "channel"):
        number = _find_first(element, "number")
        name = _find_first(element, "name")
        channels.append(Channel(
            _text_of(number) if number is not None else "",
            _text_of(name) if name is not None else "",
            owner=owner,
        ))
    return channels
