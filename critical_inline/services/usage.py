"""Collects the selector anchors a document exposes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Set, Union

from bs4 import BeautifulSoup, ParserRejectedMarkup

from critical_inline.core.config import settings
from critical_inline.core.errors import ParseError

# Every browser creates these elements even when the markup omits them.
IMPLICIT_TAGS = frozenset({"html", "head", "body"})


@dataclass
class DocumentUsage:
    """Tag names, classes, ids and attribute values present in one document."""

    soup: BeautifulSoup
    tags: Set[str] = field(default_factory=set)
    classes: Set[str] = field(default_factory=set)
    ids: Set[str] = field(default_factory=set)
    attributes: Dict[str, Set[str]] = field(default_factory=dict)

    def has_attribute(self, name: str) -> bool:
        return name.lower() in self.attributes

    def attribute_values(self, name: str) -> Set[str]:
        return self.attributes.get(name.lower(), set())


def decode_document(content: Union[str, bytes]) -> str:
    """Return document text, decoding byte buffers as UTF-8."""

    if isinstance(content, bytes):
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("Document is not valid UTF-8", position=exc.start) from exc
    return content


def parse_document(content: Union[str, bytes], html_parser: str | None = None) -> BeautifulSoup:
    """Parse markup into a BeautifulSoup tree, tolerating malformed input."""

    text = decode_document(content)
    try:
        return BeautifulSoup(text, html_parser or settings.html_parser)
    except ParserRejectedMarkup as exc:
        raise ParseError("Document markup was rejected by the HTML parser", reason=str(exc)) from exc


def collect_usage(soup: BeautifulSoup) -> DocumentUsage:
    """Walk every element once and record the tokens selectors can anchor on."""

    usage = DocumentUsage(soup=soup, tags=set(IMPLICIT_TAGS))
    for element in soup.find_all(True):
        usage.tags.add(element.name.lower())
        for name, value in element.attrs.items():
            name = name.lower()
            values = usage.attributes.setdefault(name, set())
            # bs4 splits multi-valued attributes (class, rel, ...) into lists
            if isinstance(value, (list, tuple)):
                values.add(" ".join(value))
                values.update(value)
            else:
                values.add(value)

            if name == "class":
                usage.classes.update(value if isinstance(value, (list, tuple)) else value.split())
            elif name == "id":
                usage.ids.add(value if isinstance(value, str) else " ".join(value))
    return usage
