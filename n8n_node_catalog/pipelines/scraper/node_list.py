"""Discovery of node documentation pages from the n8n integration listings."""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from ...models import NodeReference
from ..constants import (
    COMMON_NODE_KEYWORDS,
    CORE_NODE_KEYWORDS,
    DEFAULT_PRIORITY,
    DOCS_PATH_SEGMENT,
    MAIN_CATEGORY,
    NODE_CATEGORIES,
    NON_NODE_SEGMENTS,
)
from .base import BaseScraper, NetworkError
from .extractors import clean_text

logger = logging.getLogger(__name__)

Link = Tuple[str, str]


class NodeListScraper(BaseScraper):
    """Discovers node references from the root listing page and each category page."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.config.setdefault("categories", NODE_CATEGORIES)

    def get_source_name(self) -> str:
        return "n8n_node_list"

    async def scrape(self) -> List[NodeReference]:
        return await self.discover()

    async def discover(self) -> List[NodeReference]:
        """Discover node references across all listing pages.

        A listing page that cannot be fetched is logged and skipped; the result
        is deduplicated and ordered by (priority, category, name).
        """
        self.logger.info("Starting node discovery")
        references: List[NodeReference] = []

        async with self.open_session():
            references.extend(
                await self._scrape_listing(self.config["base_url"], MAIN_CATEGORY, "main")
            )

            for category_key, category in self.config["categories"].items():
                url = urljoin(self.config["base_url"], category["path"])
                references.extend(await self._scrape_listing(url, category["name"], category_key))

        unique = self.deduplicate(references)
        ordered = self.sort_references(unique)

        self.logger.info(
            f"Discovered {len(ordered)} unique nodes ({len(references) - len(unique)} duplicates removed)"
        )
        return ordered

    async def _scrape_listing(
        self, url: str, category: str, category_key: str
    ) -> List[NodeReference]:
        self.logger.info(f"Scraping listing page: {url}")
        self.progress["total"] += 1

        try:
            html = await self.fetch_page(url, category_key)
            return self.extract_node_references(html, category, category_key)
        except NetworkError as e:
            self.logger.warning(f"Failed to scrape listing {category}: {e}")
            return []
        except Exception as e:
            self.logger.warning(f"Unexpected error scraping listing {category}: {e}")
            return []

    def extract_node_references(
        self, html: str, category: str, category_key: str
    ) -> List[NodeReference]:
        """Turn the node links of one listing page into references."""
        references = []

        for url, text in self.extract_node_links(html):
            try:
                reference = self.create_node_reference(url, text, category, category_key)
            except Exception as e:
                self.logger.warning(f"Skipping node link {url} in {category}: {e}")
                continue
            if reference is not None:
                references.append(reference)

        self.logger.info(f"Extracted {len(references)} nodes from {category}")
        return references

    def extract_node_links(self, html: str) -> List[Link]:
        """Collect node links with three cumulative strategies, deduplicated by URL.

        1. anchors whose href contains the documentation path segment
        2. any anchor, labelled by its text or title attribute
        3. anchors inside list items, labelled by the list item text
        """
        soup = BeautifulSoup(html, "html.parser")
        links: Dict[str, str] = {}

        def add(href: Optional[str], text: Optional[str]) -> None:
            if not href:
                return
            url = self.normalize_url(href)
            text = clean_text(text)
            if text and url not in links and self.is_valid_node_url(url):
                links[url] = text

        for anchor in soup.select(f'a[href*="{DOCS_PATH_SEGMENT}"]'):
            add(anchor.get("href"), anchor.get_text(separator=" "))

        for anchor in soup.find_all("a", href=True):
            add(
                anchor["href"],
                anchor.get_text(separator=" ") or anchor.get("title") or anchor.get("aria-label"),
            )

        for item in soup.find_all("li"):
            anchor = item.find("a", href=True)
            if anchor is not None:
                add(anchor["href"], anchor.get_text(separator=" ") or item.get_text(separator=" "))

        return list(links.items())

    def normalize_url(self, href: str) -> str:
        url, _ = urldefrag(urljoin(self.config["base_url"], href.strip()))
        return url

    def is_valid_node_url(self, url: str) -> bool:
        """A node URL lies below the documentation segment and names a leaf page."""
        path = urlparse(url).path
        if DOCS_PATH_SEGMENT not in path:
            return False

        remainder = path.split(DOCS_PATH_SEGMENT, 1)[1].strip("/")
        if not remainder:
            return False

        category_roots = {c["path"].strip("/") for c in self.config["categories"].values()}
        category_roots.update(c["path"].strip("/") for c in NODE_CATEGORIES.values())
        if remainder in category_roots:
            return False

        leaf = remainder.split("/")[-1]
        return len(leaf) > 1 and leaf not in NON_NODE_SEGMENTS

    def create_node_reference(
        self, url: str, display_name: str, category: str, category_key: str
    ) -> Optional[NodeReference]:
        segments = [s for s in urlparse(url).path.split("/") if s]
        if not segments:
            return None

        name = "".join(c for c in segments[-1] if c.isascii() and (c.isalnum() or c in "-_"))
        if len(name) < 2:
            return None

        priority = self.compute_priority(name, display_name, category_key)

        return NodeReference(
            name=name,
            display_name=display_name or name,
            url=url,
            category=category,
            priority=priority,
        )

    def compute_priority(self, name: str, display_name: str, category_key: str) -> int:
        category = self.config["categories"].get(category_key) or NODE_CATEGORIES.get(
            category_key, {}
        )
        priority = category.get("priority", DEFAULT_PRIORITY)

        haystack = f"{name} {display_name}".lower()
        if any(keyword in haystack for keyword in CORE_NODE_KEYWORDS):
            return 1
        if any(keyword in haystack for keyword in COMMON_NODE_KEYWORDS):
            priority = max(1, priority - 1)

        return priority

    @staticmethod
    def deduplicate(references: List[NodeReference]) -> List[NodeReference]:
        """Keep the first reference for every (name, url) key."""
        seen = set()
        unique = []
        for reference in references:
            if reference.key not in seen:
                seen.add(reference.key)
                unique.append(reference)
        return unique

    @staticmethod
    def sort_references(references: List[NodeReference]) -> List[NodeReference]:
        return sorted(references, key=lambda r: (r.priority, r.category, r.name))

    @staticmethod
    def filter_by_category(references: List[NodeReference], category: str) -> List[NodeReference]:
        return [r for r in references if r.category == category]

    @staticmethod
    def high_priority(references: List[NodeReference], max_priority: int = 2) -> List[NodeReference]:
        return [r for r in references if r.priority <= max_priority]

    @staticmethod
    def get_discovery_stats(references: List[NodeReference]) -> Dict[str, Any]:
        """Summarize a discovery run."""
        return {
            "total_nodes": len(references),
            "by_category": dict(Counter(r.category for r in references)),
            "by_priority": {
                priority: count
                for priority, count in sorted(Counter(r.priority for r in references).items())
            },
            "high_priority_nodes": sum(1 for r in references if r.priority <= 2),
            "core_nodes": sum(1 for r in references if r.priority == 1),
        }
