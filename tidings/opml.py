"""OPML import and export for feed subscriptions."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field


@dataclass
class OPMLFeed:
    """A feed outline from an OPML file."""
    url: str
    title: str | None
    tags: list[str] = field(default_factory=list)


@dataclass
class OPMLDocument:
    """Parsed OPML document."""
    title: str | None
    feeds: list[OPMLFeed]


def parse_opml(xml_content: str) -> OPMLDocument:
    """
    Parse OPML XML content and extract feed subscriptions.

    Folder names enclosing a feed outline, and the comma-separated values of
    its "category" attribute, become the feed's tags.

    Raises:
        ValueError: If XML is invalid or not OPML format
    """
    try:
        root = ET.fromstring(xml_content)
    except ET.ParseError as e:
        raise ValueError(f"Invalid XML: {e}")

    if root.tag.lower() != "opml":
        raise ValueError(f"Not an OPML document (root element: {root.tag})")

    doc_title = None
    head = root.find("head")
    if head is not None:
        title_elem = head.find("title")
        if title_elem is not None and title_elem.text:
            doc_title = title_elem.text.strip()

    body = root.find("body")
    if body is None:
        raise ValueError("OPML document missing <body> element")

    feeds: list[OPMLFeed] = []
    _parse_outlines(body, feeds, folders=[])

    return OPMLDocument(title=doc_title, feeds=feeds)


def _split_categories(value: str | None) -> list[str]:
    if not value:
        return []
    tags = []
    for part in value.replace("/", ",").split(","):
        part = part.strip()
        if part:
            tags.append(part)
    return tags


def _parse_outlines(element: ET.Element, feeds: list[OPMLFeed], folders: list[str]) -> None:
    """Recursively collect feed outlines, tracking the enclosing folder names."""
    for outline in element.findall("outline"):
        xml_url = outline.get("xmlUrl") or outline.get("xmlurl")

        if xml_url:
            title = outline.get("title") or outline.get("text")
            tags = list(folders)
            for tag in _split_categories(outline.get("category")):
                if tag not in tags:
                    tags.append(tag)
            feeds.append(OPMLFeed(
                url=xml_url.strip(),
                title=title.strip() if title else None,
                tags=tags,
            ))
        else:
            folder_name = (outline.get("title") or outline.get("text") or "").strip()
            _parse_outlines(
                outline,
                feeds,
                folders=folders + [folder_name] if folder_name else folders,
            )


def generate_opml(feeds: list[OPMLFeed], title: str = "Tidings Subscriptions") -> str:
    """
    Generate OPML XML from a list of feeds.

    Outlines are written flat, in order, with tags in the "category" attribute.
    """
    root = ET.Element("opml", version="2.0")

    head = ET.SubElement(root, "head")
    title_elem = ET.SubElement(head, "title")
    title_elem.text = title

    body = ET.SubElement(root, "body")
    for feed in feeds:
        attrs = {
            "type": "rss",
            "xmlUrl": feed.url,
            "text": feed.title or feed.url,
        }
        if feed.title:
            attrs["title"] = feed.title
        if feed.tags:
            attrs["category"] = ",".join(feed.tags)
        ET.SubElement(body, "outline", **attrs)

    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(
        root, encoding="unicode"
    )
