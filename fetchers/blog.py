"""Blog fetcher: article titles from ecosystem blogs.

Each configured blog index page is parsed with BeautifulSoup using a cascade
of generic title selectors; the first selector that finds anything wins.
Titles are classified into categories and emitted as one ``blog_articles``
count per (blog, category).
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from config import BlogSource, RunConfig
from core.errors import FetchError
from fetchers.base import Fetcher
from schemas.signal import Category, Signal, SignalSource
from utils.categories import classify

logger = logging.getLogger(__name__)

TITLE_SELECTORS = [
    "article h2 a",
    "article h3 a",
    ".post-title a",
    "h2.entry-title a",
    "a[class*='title']",
    "h2 a",
    "h3 a",
]
MIN_TITLE_LENGTH = 6


def extract_articles(html: str, base_url: str) -> list[tuple[str, str]]:
    """Return unique (title, absolute url) pairs from a blog index page."""
    soup = BeautifulSoup(html, "html.parser")

    for selector in TITLE_SELECTORS:
        articles: dict[str, str] = {}
        for element in soup.select(selector):
            title = " ".join(element.get_text(" ", strip=True).split())
            if len(title) >= MIN_TITLE_LENGTH and title not in articles:
                articles[title] = urljoin(base_url, element.get("href", ""))
        if articles:
            return list(articles.items())
    return []


class BlogFetcher(Fetcher):
    """Scrapes configured blogs for article titles."""

    name = "blog"
    source = SignalSource.BLOG

    async def fetch(self, config: RunConfig) -> list[Signal]:
        """Scrape every configured blog.

        A blog that fails to load is logged and skipped.

        Raises:
            FetchError: If every configured blog failed.
        """
        collected_at = datetime.now(timezone.utc)
        signals: list[Signal] = []
        failures = 0

        async with self._session() as client:
            for blog in config.blogs.sources:
                try:
                    html = await self._get_text(client, blog.url)
                except FetchError as exc:
                    failures += 1
                    logger.warning("Blog '%s' failed, skipping: %s", blog.name, exc)
                    continue
                signals.extend(self._blog_signals(blog, html, collected_at, config))

        if config.blogs.sources and failures == len(config.blogs.sources):
            raise FetchError(self.name, f"all {failures} blogs failed")

        logger.info("Blogs: %d signals.", len(signals))
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _blog_signals(
        self,
        blog: BlogSource,
        html: str,
        collected_at: datetime,
        config: RunConfig,
    ) -> list[Signal]:
        articles = extract_articles(html, blog.url)
        if not articles:
            logger.debug("No article titles found on '%s'.", blog.name)
            return []

        by_category: dict[Category, list[tuple[str, str]]] = defaultdict(list)
        for title, link in articles:
            by_category[classify(title, config.category_keywords)].append((title, link))

        return [
            Signal(
                source=self.source,
                category=category,
                metric_name="blog_articles",
                value=float(len(items)),
                unit="articles",
                timestamp=collected_at,
                url=blog.url,
                metadata={
                    "blog": blog.name,
                    "titles": [title for title, _ in items[: config.blogs.max_titles]],
                    "links": [link for _, link in items[: config.blogs.max_titles]],
                },
            )
            for category, items in by_category.items()
        ]
