"""Namespace-agnostic ElementTree helpers for the XML track formats.

GPX 1.0/1.1, TCX v1/v2 and KML 2.1/2.2 all live under different namespace
URIs, so lookups match on local tag names instead of fixed prefixes.
"""

from __future__ import annotations

from typing import Iterator, Optional
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from ..errors import ParseError, ParseErrorKind


def load_root(data: bytes, source: str) -> Element:
    """Parse ``data`` safely and return the document root."""

    try:
        return ET.fromstring(data)
    except ET.ParseError as exc:
        raise ParseError(ParseErrorKind.MALFORMED, f"Invalid {source} XML: {exc}") from exc
    except DefusedXmlException as exc:
        raise ParseError(
            ParseErrorKind.MALFORMED, f"{source} XML uses forbidden constructs: {exc}"
        ) from exc


def local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def iter_named(element: Element, name: str) -> Iterator[Element]:
    """All descendants (including ``element``) whose local name is ``name``."""

    for node in element.iter():
        if local_name(node.tag) == name:
            yield node


def child(element: Element, name: str) -> Optional[Element]:
    for node in element:
        if local_name(node.tag) == name:
            return node
    return None


def child_text(element: Element, *path: str) -> Optional[str]:
    """Text of the direct-descendant chain ``path``, stripped, or ``None``."""

    node: Optional[Element] = element
    for name in path:
        if node is None:
            return None
        node = child(node, name)
    if node is None or node.text is None:
        return None
    text = node.text.strip()
    return text or None


def descendant_text(element: Element, name: str) -> Optional[str]:
    """Text of the first descendant named ``name`` at any depth."""

    for node in iter_named(element, name):
        if node is element:
            continue
        if node.text and node.text.strip():
            return node.text.strip()
    return None
