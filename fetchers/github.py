"""GitHub fetcher: recently created Solana repositories.

Runs one repository search per configured query, restricted to repos
created in the last ``days_back`` days. Each repo yields two signals,
``repo_stars`` and ``repo_forks``, carrying the repo name and creation time
the velocity deriver needs.
"""

import logging
from datetime import datetime, timedelta, timezone

from config import RunConfig
from core.errors import FetchError
from fetchers.base import Fetcher
from schemas.signal import Signal, SignalSource
from utils.categories import classify

logger = logging.getLogger(__name__)


class GitHubFetcher(Fetcher):
    """Collects star and fork counts for new Solana repos."""

    name = "github"
    source = SignalSource.GITHUB

    async def fetch(self, config: RunConfig) -> list[Signal]:
        """Search GitHub and return two signals per unique repo.

        A failing query is logged and skipped. If every query fails the
        fetcher raises, so the run records GitHub as unavailable.

        Raises:
            FetchError: If no query succeeded.
        """
        settings = config.github
        collected_at = datetime.now(timezone.utc)
        since = (collected_at - timedelta(days=settings.days_back)).date().isoformat()

        headers = {"Accept": "application/vnd.github+json"}
        if settings.token:
            headers["Authorization"] = f"Bearer {settings.token}"

        repos: dict[str, dict] = {}
        failures: list[str] = []

        async with self._session(headers=headers) as client:
            for query in settings.queries:
                try:
                    data = await self._get_json(
                        client,
                        f"{settings.api_url}/search/repositories",
                        params={
                            "q": f"{query} created:>{since}",
                            "sort": "stars",
                            "order": "desc",
                            "per_page": settings.per_page,
                        },
                        headers=headers,
                    )
                except FetchError as exc:
                    logger.warning("GitHub query '%s' failed: %s", query, exc)
                    failures.append(str(exc))
                    continue

                for item in data.get("items", []):
                    full_name = item.get("full_name")
                    if full_name and full_name not in repos:
                        repos[full_name] = item

        if failures and len(failures) == len(settings.queries):
            raise FetchError(self.name, f"all {len(failures)} search queries failed")

        signals: list[Signal] = []
        for full_name, item in repos.items():
            signals.extend(self._repo_signals(full_name, item, collected_at, config))

        logger.info("GitHub: %d repos -> %d signals.", len(repos), len(signals))
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _repo_signals(
        self,
        full_name: str,
        item: dict,
        collected_at: datetime,
        config: RunConfig,
    ) -> list[Signal]:
        description = item.get("description") or ""
        topics = item.get("topics") or []
        category = classify(
            " ".join([full_name.replace("/", " ").replace("-", " "), description, *topics]),
            config.category_keywords,
        )
        metadata = {
            "repo": full_name,
            "created_at": item.get("created_at"),
            "description": description[:200],
            "language": item.get("language"),
            "topics": topics,
        }

        return [
            Signal(
                source=self.source,
                category=category,
                metric_name=metric,
                value=float(item.get(field) or 0),
                unit=unit,
                timestamp=collected_at,
                url=item.get("html_url"),
                metadata=dict(metadata),
            )
            for metric, field, unit in (
                ("repo_stars", "stargazers_count", "stars"),
                ("repo_forks", "forks_count", "forks"),
            )
        ]
