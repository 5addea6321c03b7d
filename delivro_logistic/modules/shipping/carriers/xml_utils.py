"""
ElementTree helpers shared by the XML carriers (Canada Post, Purolator).

Carrier payloads are parsed namespace-blind: every tag is stripped to its
local name after parsing, so lookups read ``find("price-details/base")``
rather than carrying namespace maps around.
"""
from typing import Optional
from xml.etree import ElementTree as ET


def parse_xml(body) -> ET.Element:
    """Parse ``body`` (bytes or str) and strip namespaces. Raises ET.ParseError."""
    root = ET.fromstring(body)
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


def find_text(element: Optional[ET.Element], path: str, default: str = "") -> str:
    if element is None:
        return default
    found = element.find(path)
    if found is None or found.text is None:
        return default
    return found.text.strip()


def find_float(element: Optional[ET.Element], path: str, default: float = 0.0) -> float:
    value = find_text(element, path)
    try:
        return float(value) if value else default
    except ValueError:
        return default


def find_int(element: Optional[ET.Element], path: str, default: int = 0) -> int:
    value = find_text(element, path)
    try:
        return int(float(value)) if value else default
    except ValueError:
        return default


def find_bool(element: Optional[ET.Element], path: str, default: bool = False) -> bool:
    value = find_text(element, path).lower()
    if not value:
        return default
    return value in ("true", "1", "yes")


def sub_text(parent: ET.Element, tag: str, text, omit_empty: bool = False) -> Optional[ET.Element]:
    """Append ``<tag>text</tag>``; with ``omit_empty`` skip blank values."""
    if omit_empty and (text is None or text == ""):
        return None
    child = ET.SubElement(parent, tag)
    if isinstance(text, bool):
        child.text = "true" if text else "false"
    elif text is not None:
        child.text = str(text)
    return child


def to_bytes(element: ET.Element) -> bytes:
    return ET.tostring(element, encoding="utf-8", xml_declaration=True)
