# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Convert XML response bodies into plain dict/list/str trees.

AWS REST APIs answer with small XML documents.  Rather than walking an
element tree at every call site, responses are converted into nested
Python values:

- An element without child elements becomes its text (``""`` if empty).
- An element with child elements becomes a dict keyed by child tag.
- A child tag that repeats becomes a list of values in document order.

Namespaces are dropped from tag names and attributes are ignored.
"""

from __future__ import annotations

from typing import Any
from xml.etree import ElementTree


class XmlError(ValueError):
    """Raised when a document is not well-formed XML."""


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _add_child(children: dict[str, Any], tag: str, value: Any) -> None:
    if tag not in children:
        children[tag] = value
    elif isinstance(children[tag], list):
        children[tag].append(value)
    else:
        children[tag] = [children[tag], value]


class _TreeBuilder:
    """State machine fed with pull-parser start/end events."""

    def __init__(self) -> None:
        self._stack: list[tuple[str, dict[str, Any]]] = []
        self.result: dict[str, Any] | None = None

    def start(self, element: ElementTree.Element) -> None:
        self._stack.append((_local_name(element.tag), {}))

    def end(self, element: ElementTree.Element) -> None:
        tag, children = self._stack.pop()
        value: Any = children if children else (element.text or "")
        # Text and children have been consumed
        element.clear()
        if self._stack:
            _add_child(self._stack[-1][1], tag, value)
        else:
            self.result = {tag: value}


def xml_to_tree(document: str | bytes) -> dict[str, Any]:
    """Convert an XML document into a nested value.

    Args:
        document: XML text.

    Returns:
        ``{root_tag: value}``.

    Raises:
        XmlError: If the document is malformed or empty.
    """
    parser = ElementTree.XMLPullParser(events=("start", "end"))
    builder = _TreeBuilder()

    def drain() -> None:
        for event, element in parser.read_events():
            if event == "start":
                builder.start(element)
            else:
                builder.end(element)

    try:
        parser.feed(document)
        drain()
        parser.close()
        drain()
    except ElementTree.ParseError as e:
        raise XmlError(f"Malformed XML: {e}") from e

    if builder.result is None:
        raise XmlError("Document has no root element")
    return builder.result


def as_list(value: Any) -> list[Any]:
    """Normalize a possibly-repeated child value into a list.

    A missing or empty value gives an empty list.
    """
    if isinstance(value, list):
        return value
    if value is None or value == "":
        return []
    return [value]
