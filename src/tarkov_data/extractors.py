"""
Field extractors for Escape from Tarkov wiki quest pages.

Each extractor is a pure function over a parsed document. Wiki markup is
only loosely structured, so every rule degrades to "absent" rather than
raising: an ambiguous infobox row yields None, an unrecognised reward line
lands in ``other`` verbatim.
"""

import re
from collections.abc import Callable, Iterator
from typing import NamedTuple
from urllib.parse import unquote, urljoin, urlsplit

from bs4 import BeautifulSoup, NavigableString, Tag

from tarkov_data import dom
from tarkov_data.models import ExtractedQuest, Objective, QuestLink, ReputationReward, utcnow

IMAGE_CDN_BASE = "https://static.wikia.nocookie.net/escapefromtarkov_gamepedia/images"

MAP_NAMES = [
    "Ground Zero",
    "Streets of Tarkov",
    "Streets",
    "Woods",
    "Factory",
    "Interchange",
    "Customs",
    "Reserve",
    "Lighthouse",
    "Shoreline",
    "The Lab",
    "Labs",
]

_EXCLUDED_NAMESPACES = ("Category:", "File:", "User:", "Template:", "Special:")

_RELATION_LABEL = re.compile(
    r"(previous|leads\s+to|other\s+choices|requirement\s+for)\s*:", re.IGNORECASE
)
_BARE_RELATION_LABEL = re.compile(r"^(previous|leads\s+to)\s*:?$", re.IGNORECASE)
_NAME_SEPARATORS = re.compile(r"[,;\n•·]")

_PHRASE_PREDECESSOR = re.compile(
    r"\b(?i:must\s+)?(?i:accept|complete)\s+(?:(?i:the)\s+(?i:quest|task)\s+)?[\"“']?"
    r"([A-Z0-9][\w'&\-]*(?:\s+(?:[A-Z0-9][\w'&\-]*|of|the|a|on|in|to|-)(?=\s|$|[.,;!?\"”']))*)"
)
_LINK_PHRASE_PREFIX = re.compile(
    r"(?:accept|complete)(?:\s+the\s+(?:quest|task))?\s*[\"“']?\s*$", re.IGNORECASE
)
_TRAILING_CONNECTORS = re.compile(r"(?:\s+(?:of|the|a|on|in|to|-))+$")
_REJECTED_NAME_WORDS = ("level", "reputation", "standing")

_LEVEL_PATTERNS = [
    re.compile(r"(?:must\s+be|required|need(?:s)?)\D{0,30}?level[\s:]*(\d+)", re.IGNORECASE),
    re.compile(r"level[\s:]*(\d+)\D{0,30}?to\s+start", re.IGNORECASE),
    re.compile(r"minimum\D{0,30}?level[\s:]*(\d+)", re.IGNORECASE),
    re.compile(r"level[\s:]*(\d+)", re.IGNORECASE),
]

_EXPERIENCE = re.compile(r"^([+-]?)\s*(\d{1,3}(?:,\d{3})+|\d+)\s*EXP$", re.IGNORECASE)
_REPUTATION = [
    re.compile(
        r"^(?P<name>[A-Za-z][\w .'\-]*?)\s+Rep\s*:?\s*(?P<amount>[+-]?\d+(?:\.\d+)?)$",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(?P<name>[A-Za-z][\w .'\-]*?)\s+(?P<amount>[+-]?\d+(?:\.\d+)?)\s*Rep$",
        re.IGNORECASE,
    ),
    re.compile(r"^(?P<name>[A-Za-z][\w .'\-]*?)\s+(?P<amount>[+-]?\d+(?:\.\d+)?)$"),
]

_OPTIONAL_MARKER = re.compile(r"\(optional\)|\[optional\]|optional:", re.IGNORECASE)
_LABELLED_LINE = re.compile(r"^([^:]{1,49}):\s*(.+)$")
_SENTENCE_LINE = re.compile(r"^([^.]{1,49})\.\s+(.+)$")
_LIST_PREFIX = re.compile(r"^(?:\d+[.)]|[•\-*●○])\s+")

_IMAGE_PATH = re.compile(r"/images/(.+?)(?:/revision/latest.*)?$")


class Relations(NamedTuple):
    predecessor_names: list[str]
    predecessor_links: list[QuestLink]
    successor_names: list[str]


class Rewards(NamedTuple):
    experience: int | None
    reputation: list[ReputationReward]
    other: list[str]


# --- Infobox ---


def infobox_value(doc: Tag, label: str) -> str | None:
    wanted = label.strip().lower()
    for cell in doc.select(".va-infobox-label"):
        if dom.text_of(cell).lower() != wanted:
            continue
        row = cell.find_parent("tr")
        if row is None:
            continue
        content = row.select_one("td.va-infobox-content")
        if content is None:
            continue
        link = next(iter(dom.wiki_links(content)), None)
        value = dom.text_of(link) if link is not None else ""
        if not value:
            value = dom.text_of(content)
        if value and value != "-":
            return value
    return None


def extract_flag(doc: Tag, keyword: str) -> bool | None:
    keyword = keyword.lower()
    for cell in doc.find_all(["td", "th"]):
        if cell.find(["td", "th", "table"]) is not None:
            continue
        text = dom.text_of(cell).lower()
        if "required for" not in text or keyword not in text:
            continue
        row = cell.find_parent("tr")
        if row is None:
            continue
        for other in row.find_all("td", recursive=False):
            if other is cell or dom.has_class(
                other, "va-infobox-spacing-h", "va-infobox-spacing-v"
            ):
                continue
            value = dom.text_of(other).lower()
            if value == "-":
                return None
            if re.match(r"^yes\b", value):
                return True
            if re.match(r"^no\b", value):
                return False
    return None


# --- Relations ---


class _Token(NamedTuple):
    kind: str  # "label", "text", "link", "stop"
    value: str = ""
    link: Tag | None = None


def _label_key(raw: str) -> str:
    return " ".join(raw.lower().split())


def _text_tokens(text: str) -> Iterator[_Token]:
    stripped = text.strip()
    bare = _BARE_RELATION_LABEL.match(stripped)
    if bare:
        yield _Token("label", _label_key(bare.group(1)))
        return
    position = 0
    for match in _RELATION_LABEL.finditer(text):
        if match.start() > position:
            yield _Token("text", text[position : match.start()])
        yield _Token("label", _label_key(match.group(1)))
        position = match.end()
    if position < len(text):
        yield _Token("text", text[position:])


def _relation_tokens(nodes: list[Tag]) -> Iterator[_Token]:
    for node in nodes:
        if dom.is_heading(node) and dom.heading_level(node) <= 2:
            yield _Token("stop")
            return
        for child in node.descendants:
            if isinstance(child, Tag):
                if child.name == "a" and child.get("href"):
                    yield _Token("link", link=child)
                elif child.name in ("br", "li", "p", "tr", "dd", "dt"):
                    yield _Token("text", "\n")
                elif child.name in ("h1", "h2"):
                    yield _Token("stop")
                    return
            elif isinstance(child, NavigableString) and dom.is_text_node(child):
                if child.find_parent("a") is not None:
                    continue
                yield from _text_tokens(str(child))
        yield _Token("text", "\n")


def _link_name(link: Tag) -> str | None:
    href = str(link.get("href", ""))
    match = re.search(r"/wiki/([^?#]+)", href)
    if not match:
        return None
    page_title = unquote(match.group(1)).replace("_", " ")
    if page_title.startswith(_EXCLUDED_NAMESPACES) or page_title == "-":
        return None
    return dom.text_of(link) or page_title


def _absolute_url(href: str, base_url: str) -> str:
    return urljoin(base_url + "/", href).split("?")[0].split("#")[0]


def _valid_name(name: str) -> bool:
    return len(name) > 2 and name != "-" and ":" not in name


def _collect_after_label(
    tokens: list[_Token], label: str, base_url: str
) -> tuple[list[str], list[QuestLink]]:
    try:
        start = next(i for i, t in enumerate(tokens) if t.kind == "label" and t.value == label)
    except StopIteration:
        return [], []

    names: list[str] = []
    links: list[QuestLink] = []
    seen_urls: set[str] = set()
    text_parts: list[str] = []
    for token in tokens[start + 1 :]:
        if token.kind in ("label", "stop"):
            break
        if token.kind == "text":
            text_parts.append(token.value)
            continue
        name = _link_name(token.link)
        if not name or not _valid_name(name):
            continue
        url = _absolute_url(str(token.link["href"]), base_url)
        if url in seen_urls:
            continue
        seen_urls.add(url)
        names.append(name)
        links.append(QuestLink(name=name, source_url=url))

    if not names:
        for part in _NAME_SEPARATORS.split("".join(text_parts)):
            name = dom.clean_text(part)
            if _valid_name(name) and name not in names:
                names.append(name)
    return names, links


def _relation_scopes(doc: Tag) -> Iterator[list[Tag]]:
    for header in doc.find_all(["th", "td"]):
        if not (header.name == "th" or dom.has_class(header, "va-infobox-header")):
            continue
        if "related quests" not in dom.text_of(header).lower():
            continue
        group = header.find_parent(class_="va-infobox-group") or header.find_parent("table")
        if group is not None:
            yield [group]

    for heading in dom.find_headings(doc, lambda t: "related quests" in t, ("h2", "h3")):
        yield list(dom.section_elements(heading))


def _requirements_anchor(doc: Tag) -> Tag | None:
    for node in doc.find_all(["h2", "h3", "dt"]):
        if "requirements" in dom.heading_text(node).lower():
            if node.name == "dt":
                return node.parent if isinstance(node.parent, Tag) else node
            return dom.section_anchor(node)
    return None


def _requirements_nodes(doc: Tag) -> list[Tag]:
    anchor = _requirements_anchor(doc)
    if anchor is None:
        return []
    nodes = []
    for sibling in dom.following_siblings(anchor):
        if dom.is_heading(sibling) and dom.heading_level(sibling) <= 4:
            break
        nodes.append(sibling)
    return nodes


def extract_requirements_text(doc: Tag) -> str | None:
    lines = [line for node in _requirements_nodes(doc) for line in dom.text_lines(node)]
    return "\n".join(lines) or None


def _acceptable_phrase_name(name: str) -> bool:
    lowered = name.lower()
    if any(word in lowered for word in _REJECTED_NAME_WORDS):
        return False
    return len(name) > 3 and not name.replace(" ", "").isdigit()


def _requirement_predecessors(doc: Tag) -> list[str]:
    names: list[str] = []
    for node in _requirements_nodes(doc):
        for link in dom.wiki_links(node):
            before = link.previous_sibling
            if not isinstance(before, NavigableString):
                continue
            if not _LINK_PHRASE_PREFIX.search(str(before)):
                continue
            name = _link_name(link)
            if name and _acceptable_phrase_name(name) and name not in names:
                names.append(name)

        plain = " ".join(
            str(s)
            for s in node.descendants
            if isinstance(s, NavigableString)
            and dom.is_text_node(s)
            and s.find_parent("a") is None
        )
        for match in _PHRASE_PREDECESSOR.finditer(dom.clean_text(plain)):
            name = _TRAILING_CONNECTORS.sub("", match.group(1)).strip()
            if _acceptable_phrase_name(name) and name not in names:
                names.append(name)
    return names


def extract_relations(doc: Tag, base_url: str) -> Relations:
    predecessors: list[str] = []
    predecessor_links: list[QuestLink] = []
    successors: list[str] = []

    for scope in _relation_scopes(doc):
        tokens = list(_relation_tokens(scope))
        names, links = _collect_after_label(tokens, "previous", base_url)
        next_names, _ = _collect_after_label(tokens, "leads to", base_url)
        if not (names or next_names):
            continue
        predecessors, predecessor_links, successors = names, links, next_names
        break

    for name in _requirement_predecessors(doc):
        if name not in predecessors:
            predecessors.append(name)

    return Relations(predecessors, predecessor_links, successors)


def extract_min_level(text: str | None) -> int | None:
    if not text:
        return None
    for pattern in _LEVEL_PATTERNS:
        match = pattern.search(text)
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
    return None


# --- Rewards ---


def classify_reward_line(line: str) -> tuple[str, int | ReputationReward | str]:
    """Classify a single reward line as ("experience" | "reputation" | "other", value)."""
    line = dom.clean_text(line)

    exp = _EXPERIENCE.match(line)
    if exp:
        value = int(exp.group(2).replace(",", ""))
        return "experience", -value if exp.group(1) == "-" else value

    for pattern in _REPUTATION:
        rep = pattern.match(line)
        if not rep:
            continue
        name = rep.group("name").strip()
        amount = float(rep.group("amount"))
        mentions_rep = re.search(r"\brep\b", line, re.IGNORECASE) is not None
        if name and not name.replace(" ", "").isdigit() and (mentions_rep or abs(amount) < 1):
            return "reputation", ReputationReward(group_name=name, amount=amount)

    return "other", line


def _reward_candidate_lines(node: Tag) -> list[str]:
    if node.name in ("ul", "ol"):
        items = node.find_all("li", recursive=False) or node.find_all("li")
        return [line for li in items for line in dom.text_lines(li)]
    if node.name == "table":
        return [line for td in node.find_all("td") for line in dom.text_lines(td)]
    nested_items = node.find_all("li")
    if nested_items:
        return [line for li in nested_items for line in dom.text_lines(li)]
    return dom.text_lines(node)


def _reward_lines(doc: Tag) -> list[str]:
    lines: list[str] = []
    for heading in dom.find_headings(doc, lambda t: t == "rewards"):
        for node in dom.section_elements(heading):
            lines.extend(_reward_candidate_lines(node))
        if lines:
            return lines

    for header in doc.find_all("th"):
        if dom.text_of(header).lower() != "rewards":
            continue
        row = header.find_parent("tr")
        if row is None:
            continue
        for sibling in row.find_next_siblings("tr"):
            if sibling.find("th") is not None:
                break
            lines.extend(line for td in sibling.find_all("td") for line in dom.text_lines(td))
        if lines:
            return lines
    return lines


def extract_rewards(doc: Tag) -> Rewards:
    experience: int | None = None
    reputation: list[ReputationReward] = []
    other: list[str] = []
    for line in _reward_lines(doc):
        kind, value = classify_reward_line(line)
        if kind == "experience":
            experience = value
        elif kind == "reputation":
            reputation.append(value)
        else:
            other.append(value)
    return Rewards(experience, reputation, other)


# --- Objectives and guide ---


def _section_predicate(target: str, excluded: tuple[str, ...]) -> Callable[[str], bool]:
    def matches(text: str) -> bool:
        if text == target:
            return True
        return target in text and not any(word in text for word in excluded)

    return matches


def _is_navbox(node: Tag) -> bool:
    if dom.has_class(node, "navbox", "va-navbox", "va-navbox-border"):
        return True
    return node.find(class_=["navbox", "va-navbox"]) is not None


def _row_text(row: Tag) -> str:
    cells = [dom.text_of(cell) for cell in row.find_all(["td", "th"])]
    return " - ".join(cell for cell in cells if cell)


def _section_lines(node: Tag, *, include_paragraphs: bool) -> list[str]:
    if node.name in ("ul", "ol"):
        return [dom.text_of(li) for li in node.find_all("li", recursive=False)]
    if node.name == "table":
        rows = [_row_text(row) for row in node.find_all("tr")]
        return [row for row in rows if len(row) > 10]
    if node.name in ("div", "p", "dl"):
        lists = node.find_all(["ul", "ol"])
        if lists:
            return [dom.text_of(li) for lst in lists for li in lst.find_all("li", recursive=False)]
        lines = []
        for text in dom.text_lines(node):
            if _LIST_PREFIX.match(text) and len(text) > 5:
                lines.append(_LIST_PREFIX.sub("", text, count=1))
            elif include_paragraphs and len(text) > 20 and "objective" not in text.lower():
                lines.append(text)
        return lines
    return []


def _tag_maps(text: str) -> list[str]:
    taken: list[tuple[int, int]] = []
    found: list[tuple[int, str]] = []
    for name in sorted(MAP_NAMES, key=len, reverse=True):
        start = text.find(name)
        while start != -1:
            end = start + len(name)
            if not any(start < e and s < end for s, e in taken):
                taken.append((start, end))
                found.append((start, name))
                break
            start = text.find(name, start + 1)
    return [name for _, name in sorted(found)]


def _parse_objective(index: int, text: str) -> Objective:
    is_optional = _OPTIONAL_MARKER.search(text) is not None
    description = dom.clean_text(_OPTIONAL_MARKER.sub("", text))

    category = "Objective"
    labelled = _LABELLED_LINE.match(description) or _SENTENCE_LINE.match(description)
    if labelled:
        category = labelled.group(1).strip()
        description = labelled.group(2).strip()

    maps = _tag_maps(text)
    return Objective(
        id=f"obj-{index}",
        category=category,
        description=description or None,
        is_optional=is_optional,
        map_names=maps or None,
    )


def extract_objectives(doc: Tag) -> list[Objective]:
    matches = _section_predicate("objectives", ("guide", "requirement"))
    lines: list[str] = []
    for heading in dom.find_headings(doc, matches):
        for node in dom.section_elements(heading):
            lines.extend(_section_lines(node, include_paragraphs=False))
        if lines:
            break
    return [_parse_objective(i, line) for i, line in enumerate(line for line in lines if line)]


def extract_guide_steps(doc: Tag) -> list[str]:
    matches = _section_predicate("guide", ("objectives", "walkthrough"))
    steps: list[str] = []
    for heading in dom.find_headings(doc, matches):
        for node in dom.section_elements(heading, stop=_is_navbox):
            steps.extend(_section_lines(node, include_paragraphs=True))
        if steps:
            break
    return [step for step in steps if step]


# --- Image ---


def canonical_image_url(src: str, base_url: str) -> str:
    parts = urlsplit(src)
    match = _IMAGE_PATH.search(parts.path)
    if match:
        url = f"{IMAGE_CDN_BASE}/{match.group(1)}/revision/latest"
        return f"{url}?{parts.query}" if parts.query else url
    if src.startswith("//"):
        return f"https:{src}"
    if src.startswith("/"):
        return base_url.rstrip("/") + src
    return src


def extract_image_url(doc: Tag, base_url: str) -> str | None:
    img = doc.select_one(".va-infobox-mainimage img")
    if img is None:
        return None
    for attribute in ("data-src", "data-original-src", "src"):
        value = img.get(attribute)
        if value and not str(value).startswith("data:"):
            return canonical_image_url(str(value), base_url)
    return None


# --- Whole page ---


def extract_quest_page(
    html: str, *, item_id: str, item_name: str, source_url: str, base_url: str
) -> ExtractedQuest:
    doc: BeautifulSoup = dom.parse_html(html)

    relations = extract_relations(doc, base_url)
    requirements_text = extract_requirements_text(doc)
    rewards = extract_rewards(doc)
    objectives = extract_objectives(doc)
    guide_steps = extract_guide_steps(doc)

    return ExtractedQuest(
        item_id=item_id,
        item_name=item_name,
        source_url=source_url,
        predecessor_names=relations.predecessor_names or None,
        predecessor_links=relations.predecessor_links or None,
        successor_names=relations.successor_names or None,
        min_player_level=extract_min_level(requirements_text),
        requirements_text=requirements_text,
        location=infobox_value(doc, "Location"),
        given_by=infobox_value(doc, "Given by"),
        kappa_required=extract_flag(doc, "kappa"),
        lightkeeper_required=extract_flag(doc, "lightkeeper"),
        experience=rewards.experience,
        reputation=rewards.reputation or None,
        other_rewards=rewards.other or None,
        image_url=extract_image_url(doc, base_url),
        objectives=objectives or None,
        guide_steps=guide_steps or None,
        last_extracted_at=utcnow(),
    )
