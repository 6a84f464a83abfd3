"""Heuristic field extraction for node documentation pages.

Every extractor here is a pure function over fetched HTML and never raises:
when a heuristic finds nothing it degrades to a documented default, and the
resulting quality loss is only visible later as a lower validation score.

Single-value fields (display name, description) are resolved by ordered chains
of ``TextStrategy`` objects; the first strategy that yields an acceptable value
wins. Repeated structures (operations, credentials, examples) are read from
heading-delimited ``Section`` blocks.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from bs4 import BeautifulSoup, Tag

from ...models import (
    NodeReference,
    NodeType,
    RawCredential,
    RawExample,
    RawOperation,
    RawParameter,
    RawRecord,
)
from ..constants import (
    CORE_NODE_KEYWORDS,
    CORE_PAGE_INDICATORS,
    CREDENTIAL_KEYWORDS,
    CREDENTIAL_TYPE_KEYWORDS,
    EXAMPLE_KEYWORDS,
    NO_DESCRIPTION,
    OPERATION_KEYWORDS,
    POLLING_INDICATORS,
    TRIGGER_INDICATORS,
    WEBHOOK_INDICATORS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECTION_HEADINGS = ["h2", "h3", "h4", "h5", "h6"]
TITLE_SUFFIX_RE = re.compile(r"\s*[|\-]\s*n8n\b.*$", re.IGNORECASE)
VERSION_PATTERNS = [
    re.compile(r"version[:\s]+([0-9]+\.[0-9]+(?:\.[0-9]+)?)", re.IGNORECASE),
    re.compile(r"\bv([0-9]+\.[0-9]+(?:\.[0-9]+)?)\b", re.IGNORECASE),
]


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace and drop characters outside word, space, hyphen and dot."""
    if not text:
        return ""

    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[^\w\s\-.]", "", text)
    return text.strip()


def to_identifier(text: str) -> str:
    """Lowercase alphanumeric identifier, e.g. ``"Create Message"`` -> ``"createmessage"``."""
    return re.sub(r"[^a-z0-9]", "", text.lower())


def page_text(soup: BeautifulSoup) -> str:
    """Visible page text as a single whitespace-normalized string."""
    soup = BeautifulSoup(str(soup), "html.parser")
    for unwanted in soup.find_all(["script", "style"]):
        unwanted.decompose()

    return re.sub(r"\s+", " ", soup.get_text(separator=" ")).strip()


def _safely(label: str, extract: Callable[[], T], default: T) -> T:
    try:
        return extract()
    except Exception as e:
        logger.warning(f"Error extracting {label}: {e}")
        return default


# ---------------------------------------------------------------------------
# Strategy chains for single-value fields
# ---------------------------------------------------------------------------


class TextStrategy(ABC):
    """One way of finding a text value on a page."""

    @abstractmethod
    def extract(self, soup: BeautifulSoup) -> Optional[str]:
        """Return the cleaned value, or None when this strategy finds nothing."""


class SelectorText(TextStrategy):
    """Text of the first element matching a CSS selector."""

    def __init__(self, selector: str):
        self.selector = selector

    def extract(self, soup: BeautifulSoup) -> Optional[str]:
        elem = soup.select_one(self.selector)
        if elem is None:
            return None
        return clean_text(elem.get_text(separator=" ")) or None


class TitleTagText(TextStrategy):
    """The ``<title>`` text with the site suffix removed."""

    def extract(self, soup: BeautifulSoup) -> Optional[str]:
        if soup.title is None or not soup.title.string:
            return None
        return clean_text(TITLE_SUFFIX_RE.sub("", soup.title.string)) or None


class MetaDescription(TextStrategy):
    def extract(self, soup: BeautifulSoup) -> Optional[str]:
        meta = soup.select_one('meta[name="description"]')
        if meta is None:
            return None
        return clean_text(meta.get("content", "")) or None


class ParagraphAfterHeading(TextStrategy):
    """The first paragraph that follows the first ``<h1>``."""

    def extract(self, soup: BeautifulSoup) -> Optional[str]:
        heading = soup.find("h1")
        if heading is None:
            return None
        paragraph = heading.find_next("p")
        if paragraph is None:
            return None
        return clean_text(paragraph.get_text(separator=" ")) or None


class EarlyParagraph(TextStrategy):
    """The first substantial paragraph that is not navigation text."""

    def __init__(self, min_length: int = 30, excluded: Sequence[str] = ("navigate",)):
        self.min_length = min_length
        self.excluded = excluded

    def extract(self, soup: BeautifulSoup) -> Optional[str]:
        for paragraph in soup.find_all("p"):
            text = clean_text(paragraph.get_text(separator=" "))
            if len(text) > self.min_length and not any(
                word in text.lower() for word in self.excluded
            ):
                return text
        return None


def first_match(
    strategies: Iterable[TextStrategy],
    soup: BeautifulSoup,
    accept: Callable[[str], bool] = bool,
) -> Optional[str]:
    """Run strategies in order and return the first accepted value."""
    for strategy in strategies:
        value = _safely(strategy.__class__.__name__, lambda: strategy.extract(soup), None)
        if value is not None and accept(value):
            return value
    return None


DISPLAY_NAME_STRATEGIES: List[TextStrategy] = [
    SelectorText("h1.page-title"),
    SelectorText('h1[data-testid="page-title"]'),
    SelectorText("h1"),
    SelectorText(".node-title"),
    SelectorText(".title"),
    TitleTagText(),
]

DESCRIPTION_STRATEGIES: List[TextStrategy] = [
    MetaDescription(),
    SelectorText("p.description"),
    SelectorText(".node-description, .description"),
    ParagraphAfterHeading(),
]


def extract_display_name(soup: BeautifulSoup) -> Optional[str]:
    return first_match(DISPLAY_NAME_STRATEGIES, soup)


def extract_description(soup: BeautifulSoup, min_length: int = 20) -> str:
    """Description from the first strategy that yields at least ``min_length`` chars."""
    description = first_match(DESCRIPTION_STRATEGIES, soup, lambda v: len(v) >= min_length)
    if description:
        return description

    return first_match([EarlyParagraph()], soup) or NO_DESCRIPTION


def extract_version(soup: BeautifulSoup, text: str) -> Optional[str]:
    for pattern in VERSION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)

    elem = soup.select_one(".version, .node-version, [data-version]")
    if elem is not None:
        return elem.get("data-version") or clean_text(elem.get_text()) or None
    return None


# ---------------------------------------------------------------------------
# Heading sections
# ---------------------------------------------------------------------------


@dataclass
class Section:
    """A heading and the sibling elements up to the next heading."""

    heading: Tag
    title: str
    elements: List[Tag] = field(default_factory=list)

    def first_paragraph(self) -> Optional[str]:
        for elem in self.elements:
            paragraph = elem if elem.name == "p" else elem.find("p")
            if paragraph is not None:
                text = clean_text(paragraph.get_text(separator=" "))
                if text:
                    return text
        return None

    def tables(self) -> List[Tag]:
        found = []
        for elem in self.elements:
            if elem.name == "table":
                found.append(elem)
            else:
                found.extend(elem.find_all("table"))
        return found

    def code_blocks(self) -> List[str]:
        blocks = []
        for elem in self.elements:
            pres = [elem] if elem.name == "pre" else elem.find_all("pre")
            blocks.extend(pre.get_text().strip() for pre in pres if pre.get_text().strip())
        return blocks

    @property
    def text(self) -> str:
        parts = [self.title] + [elem.get_text(separator=" ") for elem in self.elements]
        return re.sub(r"\s+", " ", " ".join(parts)).strip()


def find_sections(soup: BeautifulSoup, keywords: Sequence[str]) -> List[Section]:
    """Sections whose heading text contains any of the keywords (case-insensitive)."""
    sections = []

    for heading in soup.find_all(SECTION_HEADINGS):
        title = clean_text(heading.get_text(separator=" "))
        if not title or not any(keyword in title.lower() for keyword in keywords):
            continue

        elements = []
        for sibling in heading.next_siblings:
            if not isinstance(sibling, Tag):
                continue
            if sibling.name in SECTION_HEADINGS:
                break
            elements.append(sibling)

        sections.append(Section(heading=heading, title=title, elements=elements))

    return sections


# ---------------------------------------------------------------------------
# Parameter tables
# ---------------------------------------------------------------------------

HEADER_ALIASES = {
    "name": ("name", "parameter", "field", "option"),
    "type": ("type",),
    "required": ("required",),
    "default": ("default",),
    "description": ("description", "details"),
}


def _is_truthy(text: str) -> bool:
    return text.lower().startswith(("yes", "true", "required"))


def _column_map(table: Tag) -> Optional[Dict[str, int]]:
    header_row = table.find("tr")
    if header_row is None or not header_row.find("th"):
        return None

    headers = [clean_text(th.get_text()).lower() for th in header_row.find_all(["th", "td"])]
    columns: Dict[str, int] = {}
    for column, aliases in HEADER_ALIASES.items():
        for index, header in enumerate(headers):
            if any(alias in header for alias in aliases):
                columns.setdefault(column, index)
                break
    return columns


def parse_parameter_table(table: Tag) -> List[RawParameter]:
    """Parse parameter rows, mapping columns by header when the table has one."""
    columns = _column_map(table)
    parameters = []

    for row in table.find_all("tr"):
        cells = [clean_text(td.get_text(separator=" ")) for td in row.find_all("td")]
        if len(cells) < 2:
            continue

        if columns:

            def cell(column: str, fallback: Optional[int] = None) -> Optional[str]:
                index = columns.get(column, fallback)
                if index is None or index >= len(cells):
                    return None
                return cells[index]

            display_name = cell("name", 0) or ""
            param_type = cell("type") or "string"
            required_text = cell("required")
            default = cell("default") or None
            description = cell("description", len(cells) - 1) or ""
        else:
            display_name = cells[0]
            param_type = cells[1] if len(cells) > 2 else "string"
            required_text = cells[2] if len(cells) > 3 else None
            default = None
            description = cells[-1]

        name = to_identifier(display_name)
        if not name:
            continue

        parameters.append(
            RawParameter(
                name=name,
                display_name=display_name,
                type=param_type or "string",
                required=_is_truthy(required_text) if required_text else False,
                default=default,
                description=description or "No description",
            )
        )

    return parameters


# ---------------------------------------------------------------------------
# Repeated structures
# ---------------------------------------------------------------------------


def extract_operations(soup: BeautifulSoup) -> List[RawOperation]:
    operations = []
    for section in find_sections(soup, OPERATION_KEYWORDS):
        parameters: List[RawParameter] = []
        for table in section.tables():
            parameters.extend(parse_parameter_table(table))

        operations.append(
            RawOperation(
                name=to_identifier(section.title),
                display_name=section.title,
                description=section.first_paragraph() or NO_DESCRIPTION,
                parameters=parameters,
            )
        )
    return operations


def _credential_type(text: str) -> str:
    lowered = text.lower()
    for credential_type in CREDENTIAL_TYPE_KEYWORDS:
        if credential_type in lowered:
            return credential_type
    return "api"


def extract_credentials(soup: BeautifulSoup) -> List[RawCredential]:
    credentials = []
    for section in find_sections(soup, CREDENTIAL_KEYWORDS):
        credentials.append(
            RawCredential(
                name=to_identifier(section.title),
                display_name=section.title,
                type=_credential_type(section.text),
                required="required" in section.text.lower(),
                description=section.first_paragraph() or "Authentication required",
            )
        )
    return credentials


def _workflow_from_snippet(snippet: Optional[str]) -> Optional[Dict[str, Any]]:
    if not snippet:
        return None
    try:
        data = json.loads(snippet)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("nodes"), list):
        return data
    return None


def extract_examples(soup: BeautifulSoup) -> List[RawExample]:
    examples = []
    for section in find_sections(soup, EXAMPLE_KEYWORDS):
        code_blocks = section.code_blocks()
        code_snippet = code_blocks[0] if code_blocks else None

        examples.append(
            RawExample(
                title=section.title,
                description=section.first_paragraph() or "Example usage",
                workflow_data=_workflow_from_snippet(code_snippet),
                code_snippet=code_snippet,
            )
        )
    return examples


# ---------------------------------------------------------------------------
# Node characteristics
# ---------------------------------------------------------------------------


def _contains_any(text: str, indicators: Iterable[str]) -> bool:
    return any(indicator in text for indicator in indicators)


def determine_node_type(text: str, category: str) -> NodeType:
    content = text.lower()
    category = category.lower()

    if "trigger" in content or "trigger" in category:
        return NodeType.TRIGGER
    if "cluster" in content or "cluster" in category:
        return NodeType.CLUSTER
    if "sub-node" in content or "sub" in category:
        return NodeType.SUB
    return NodeType.REGULAR


def is_trigger_node(text: str, name: str) -> bool:
    return _contains_any(text.lower(), TRIGGER_INDICATORS) or name.lower().endswith("trigger")


def has_webhook(text: str) -> bool:
    return _contains_any(text.lower(), WEBHOOK_INDICATORS)


def has_polling(text: str) -> bool:
    return _contains_any(text.lower(), POLLING_INDICATORS)


def is_core_node(text: str, name: str) -> bool:
    return _contains_any(name.lower(), CORE_NODE_KEYWORDS) or _contains_any(
        text.lower(), CORE_PAGE_INDICATORS
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def extract_raw_record(
    html: str,
    ref: NodeReference,
    min_description_length: int = 20,
    retain_html: bool = False,
) -> RawRecord:
    """Extract a best-effort raw record from a fetched node page."""
    soup = _safely("page", lambda: BeautifulSoup(html or "", "html.parser"), None)
    if soup is None:
        soup = BeautifulSoup("", "html.parser")

    text = _safely("raw content", lambda: page_text(soup), "")

    return RawRecord(
        url=ref.url,
        name=ref.name,
        display_name=_safely("display name", lambda: extract_display_name(soup), None)
        or ref.display_name,
        description=_safely(
            "description",
            lambda: extract_description(soup, min_description_length),
            NO_DESCRIPTION,
        ),
        category=ref.category,
        subcategory=ref.subcategory,
        node_type=_safely(
            "node type", lambda: determine_node_type(text, ref.category), NodeType.REGULAR
        ),
        raw_content=text,
        version=_safely("version", lambda: extract_version(soup, text), None),
        is_trigger=is_trigger_node(text, ref.name),
        has_webhook=has_webhook(text),
        has_polling=has_polling(text),
        is_core=is_core_node(text, ref.name),
        operations=_safely("operations", lambda: extract_operations(soup), []),
        credentials=_safely("credentials", lambda: extract_credentials(soup), []),
        examples=_safely("examples", lambda: extract_examples(soup), []),
        html_content=html if retain_html else None,
    )
