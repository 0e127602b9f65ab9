"""
Minimal tree-query helpers over BeautifulSoup documents.

The field extractors only need a handful of primitives: parse, find headings
by a text predicate, walk the siblings that make up a heading's section, test
classes and read normalized text. Keeping them here keeps the extractor rules
independent of the parser's traversal API.
"""

import re
from collections.abc import Callable, Iterator

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
DEFAULT_HEADING_LEVEL = 3

_WHITESPACE = re.compile(r"\s+")
_HEADING_CLASS_LEVEL = re.compile(r"mw-heading(\d)")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def clean_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def is_text_node(node: object) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def _in_edit_section(node: NavigableString) -> bool:
    return any(has_class(parent, "mw-editsection") for parent in node.parents)


def text_of(node: Tag) -> str:
    return clean_text(" ".join(node.stripped_strings))


def heading_text(node: Tag) -> str:
    """Heading text without MediaWiki "[edit]" decorations."""
    parts = [
        str(s) for s in node.descendants if is_text_node(s) and not _in_edit_section(s)
    ]
    return clean_text(" ".join(parts))


def text_lines(node: Tag) -> list[str]:
    """Text split on <br> and block boundaries, one cleaned entry per visual line."""
    buffer: list[str] = []
    for child in node.descendants:
        if is_text_node(child):
            buffer.append(str(child))
        elif isinstance(child, Tag) and child.name in ("br", "li", "p", "div", "tr"):
            buffer.append("\n")
    lines = (clean_text(line) for line in "".join(buffer).split("\n"))
    return [line for line in lines if line]


def has_class(node: object, *names: str) -> bool:
    if not isinstance(node, Tag):
        return False
    classes = node.get("class") or []
    return any(name in classes for name in names)


def is_heading(node: object) -> bool:
    return isinstance(node, Tag) and (node.name in HEADING_TAGS or has_class(node, "mw-heading"))


def heading_level(node: Tag) -> int:
    if node.name in HEADING_TAGS:
        return int(node.name[1])
    for cls in node.get("class") or []:
        match = _HEADING_CLASS_LEVEL.fullmatch(cls)
        if match:
            return int(match.group(1))
    inner = node.find(HEADING_TAGS)
    if isinstance(inner, Tag):
        return int(inner.name[1])
    return DEFAULT_HEADING_LEVEL


def section_anchor(heading: Tag) -> Tag:
    """The node whose following siblings hold the heading's section content."""
    parent = heading.parent
    if has_class(parent, "mw-heading"):
        return parent
    return heading


def find_headings(
    root: Tag, predicate: Callable[[str], bool], tags: tuple[str, ...] = HEADING_TAGS
) -> list[Tag]:
    return [
        section_anchor(node)
        for node in root.find_all(tags)
        if predicate(heading_text(node).lower())
    ]


def following_siblings(node: Tag) -> Iterator[Tag]:
    for sibling in node.next_siblings:
        if isinstance(sibling, Tag):
            yield sibling


def section_elements(anchor: Tag, stop: Callable[[Tag], bool] | None = None) -> Iterator[Tag]:
    """Siblings after a heading until a heading of equal or shallower depth."""
    level = heading_level(anchor) if is_heading(anchor) else DEFAULT_HEADING_LEVEL
    for sibling in following_siblings(anchor):
        if is_heading(sibling) and heading_level(sibling) <= level:
            return
        if stop is not None and stop(sibling):
            return
        yield sibling


def wiki_links(root: Tag) -> list[Tag]:
    return [a for a in root.find_all("a", href=True) if "/wiki/" in a["href"]]
