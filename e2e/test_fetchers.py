"""Fetcher tests.

Every fetcher runs against an httpx.MockTransport, so requests and replies
are fully scripted. No network access.
"""

import json

import httpx
import pytest

from config import (
    BlogConfig,
    BlogSource,
    DeFiLlamaConfig,
    GitHubConfig,
    RunConfig,
    SolanaConfig,
    TrackedProgram,
)
from core.errors import FetchError
from fetchers import default_fetchers
from fetchers.blog import BlogFetcher, extract_articles
from fetchers.defillama import DeFiLlamaFetcher
from fetchers.github import GitHubFetcher
from fetchers.solana_rpc import SolanaRPCFetcher
from schemas.signal import Category, SignalSource
from utils.categories import classify, normalize_category


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def by_metric(signals):
    return {s.metric_name: s for s in signals}


# ── Categories ────────────────────────────────────────────────────────────────

class TestCategories:
    def test_classify_by_keywords(self):
        assert classify("New DeFi lending protocol launches") == Category.DEFI
        assert classify("Solana DePIN networks grow fast") == Category.DEPIN

    def test_word_boundaries(self):
        assert classify("a chain of things") == Category.OTHER

    def test_custom_keywords(self):
        assert classify("zk compression", {"Privacy": ["zk"]}) == Category.PRIVACY

    @pytest.mark.parametrize("label, expected", [
        ("Dexes", Category.DEFI),
        ("Liquid Staking", Category.DEFI),
        ("payfi", Category.PAYFI),
        ("NFTs", Category.NFT),
        ("Gaming", Category.OTHER),
    ])
    def test_normalize_category(self, label, expected):
        assert normalize_category(label) == expected


# ── GitHub ────────────────────────────────────────────────────────────────────

class TestGitHubFetcher:
    async def test_repo_signals(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [{
                "full_name": "acme/solana-dex",
                "html_url": "https://github.com/acme/solana-dex",
                "description": "Solana DEX aggregator",
                "stargazers_count": 120,
                "forks_count": 12,
                "created_at": "2025-05-20T10:00:00Z",
                "language": "Rust",
                "topics": ["defi"],
            }]})

        config = RunConfig(github=GitHubConfig(queries=["solana", "anchor"], token="t0ken"))
        async with mock_client(handler) as client:
            signals = await GitHubFetcher(client).fetch(config)

        metrics = by_metric(signals)
        assert len(signals) == 2
        assert metrics["repo_stars"].value == 120
        assert metrics["repo_forks"].value == 12
        assert metrics["repo_stars"].category == Category.DEFI
        assert metrics["repo_stars"].metadata["created_at"] == "2025-05-20T10:00:00Z"
        assert len(seen) == 2
        assert "created:>" in seen[0].url.params["q"]
        assert seen[0].headers["Authorization"] == "Bearer t0ken"

    async def test_all_queries_failing_raises(self):
        def handler(request):
            return httpx.Response(403, json={"message": "rate limited"})

        async with mock_client(handler) as client:
            with pytest.raises(FetchError, match="all 1 search queries failed"):
                await GitHubFetcher(client).fetch(RunConfig())

    async def test_one_failing_query_is_skipped(self):
        def handler(request):
            if "anchor" in request.url.params["q"]:
                return httpx.Response(500)
            return httpx.Response(200, json={"items": []})

        config = RunConfig(github=GitHubConfig(queries=["solana", "anchor"]))
        async with mock_client(handler) as client:
            assert await GitHubFetcher(client).fetch(config) == []


# ── Solana RPC ────────────────────────────────────────────────────────────────

def rpc_handler(pages: list[list[dict]], fail_methods=(), results=None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        if method in fail_methods:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "nope"}})
        if results and method in results:
            result = results[method]
        elif method == "getRecentPerformanceSamples":
            result = [{"numTransactions": 3000, "numNonVoteTransactions": 600, "samplePeriodSecs": 60}]
        elif method == "getEpochInfo":
            result = {"epoch": 700, "slotIndex": 216_000, "slotsInEpoch": 432_000, "absoluteSlot": 1}
        elif method == "getSupply":
            result = {"value": {"total": 1000, "circulating": 600}}
        elif method == "getSignaturesForAddress":
            before = body["params"][1].get("before")
            page_number = 0 if before is None else int(before.split("-")[1]) + 1
            result = pages[page_number] if page_number < len(pages) else []
        else:
            return httpx.Response(404)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})
    return handler


def signature_pages():
    return [
        [{"signature": "p0-a", "blockTime": 1_700_016_920}, {"signature": "0-0", "blockTime": 1_700_010_000}],
        [{"signature": "p1-a", "blockTime": 1_700_008_000}, {"signature": "1-1", "blockTime": 1_700_004_000}],
        [{"signature": "2-2", "blockTime": 1_700_000_000}],
    ]


def solana_config(**overrides):
    settings = dict(
        rpc_url="https://rpc.test",
        tracked_programs=[TrackedProgram(name="Jupiter", address="JUP", category="Dexes")],
        page_limit=2,
        max_pages=5,
    )
    settings.update(overrides)
    return RunConfig(solana=SolanaConfig(**settings))


class TestSolanaRPCFetcher:
    async def test_network_signals(self):
        async with mock_client(rpc_handler(signature_pages())) as client:
            signals = await SolanaRPCFetcher(client).fetch(solana_config())

        metrics = by_metric(signals)
        assert metrics["avg_tps"].value == pytest.approx(50.0)
        assert metrics["avg_non_vote_tps"].value == pytest.approx(10.0)
        assert metrics["epoch_progress"].value == pytest.approx(50.0)
        assert metrics["circulating_pct"].value == pytest.approx(60.0)
        assert all(s.source == SignalSource.SOLANA_RPC for s in signals)

    async def test_program_activity_paginates(self):
        async with mock_client(rpc_handler(signature_pages())) as client:
            signals = await SolanaRPCFetcher(client).fetch(solana_config())

        tx = by_metric(signals)["jupiter_tx"]
        assert tx.value == 5
        assert tx.metadata["window_hours"] == pytest.approx(4.7)
        assert tx.category == Category.DEFI

    async def test_max_pages_caps_walk(self):
        async with mock_client(rpc_handler(signature_pages())) as client:
            signals = await SolanaRPCFetcher(client).fetch(solana_config(max_pages=1))
        assert by_metric(signals)["jupiter_tx"].value == 2

    async def test_failed_call_skipped(self):
        handler = rpc_handler(signature_pages(), fail_methods={"getSupply"})
        async with mock_client(handler) as client:
            signals = await SolanaRPCFetcher(client).fetch(solana_config())
        assert "circulating_pct" not in by_metric(signals)
        assert "avg_tps" in by_metric(signals)

    async def test_malformed_results_skip_only_their_call(self):
        handler = rpc_handler(signature_pages(), results={
            "getRecentPerformanceSamples": ["not-a-sample"],
            "getEpochInfo": "epoch 700",
            "getSupply": {"value": "lots"},
        })
        async with mock_client(handler) as client:
            signals = await SolanaRPCFetcher(client).fetch(solana_config())

        assert list(by_metric(signals)) == ["jupiter_tx"]
        assert by_metric(signals)["jupiter_tx"].value == 5

    async def test_non_numeric_sample_fields_skip_call(self):
        handler = rpc_handler(signature_pages(), results={
            "getRecentPerformanceSamples": [{"numTransactions": "many", "samplePeriodSecs": 60}],
        })
        async with mock_client(handler) as client:
            signals = await SolanaRPCFetcher(client).fetch(solana_config())
        assert "avg_tps" not in by_metric(signals)
        assert "epoch_progress" in by_metric(signals)

    async def test_malformed_signature_page_skips_program(self):
        async with mock_client(rpc_handler([["sig-without-object"]])) as client:
            signals = await SolanaRPCFetcher(client).fetch(solana_config())
        assert "jupiter_tx" not in by_metric(signals)
        assert "avg_tps" in by_metric(signals)

    async def test_everything_failing_raises(self):
        def handler(request):
            return httpx.Response(502)

        async with mock_client(handler) as client:
            with pytest.raises(FetchError, match="all"):
                await SolanaRPCFetcher(client).fetch(solana_config())


# ── Blogs ─────────────────────────────────────────────────────────────────────

BLOG_HTML = """
<html><body>
  <article><h2><a href="/posts/depin">Solana DePIN networks grow fast</a></h2></article>
  <article><h2><a href="https://blog.test/posts/lending">New DeFi lending protocol launches</a></h2></article>
  <article><h2><a href="/posts/depin">Solana DePIN networks grow fast</a></h2></article>
  <article><h2><a href="/x">Hi</a></h2></article>
</body></html>
"""


class TestBlogFetcher:
    def test_extract_articles(self):
        articles = extract_articles(BLOG_HTML, "https://blog.test/")
        assert articles == [
            ("Solana DePIN networks grow fast", "https://blog.test/posts/depin"),
            ("New DeFi lending protocol launches", "https://blog.test/posts/lending"),
        ]

    def test_selector_fallback(self):
        html = '<div><h3><a href="/a">Payments on Solana Pay expand</a></h3></div>'
        assert extract_articles(html, "https://blog.test/")[0][0] == "Payments on Solana Pay expand"

    async def test_signals_per_category(self):
        def handler(request):
            return httpx.Response(200, text=BLOG_HTML)

        config = RunConfig(blogs=BlogConfig(sources=[BlogSource(name="Test", url="https://blog.test/")]))
        async with mock_client(handler) as client:
            signals = await BlogFetcher(client).fetch(config)

        by_category = {s.category: s for s in signals}
        assert set(by_category) == {Category.DEPIN, Category.DEFI}
        assert by_category[Category.DEPIN].metric_name == "blog_articles"
        assert by_category[Category.DEPIN].value == 1
        assert by_category[Category.DEFI].metadata["titles"] == ["New DeFi lending protocol launches"]

    async def test_all_blogs_failing_raises(self):
        def handler(request):
            return httpx.Response(500)

        async with mock_client(handler) as client:
            with pytest.raises(FetchError):
                await BlogFetcher(client).fetch(RunConfig())


# ── DeFiLlama ─────────────────────────────────────────────────────────────────

PROTOCOLS = [
    {"name": "Jupiter", "slug": "jupiter", "category": "Dexes", "chains": ["Solana"],
     "chainTvls": {"Solana": 2e9}, "tvl": 2.1e9, "change_1d": 1.5},
    {"name": "Tiny", "slug": "tiny", "category": "Dexes", "chains": ["Solana"], "tvl": 10},
    {"name": "Aave", "slug": "aave", "category": "Lending", "chains": ["Ethereum"], "tvl": 1e10},
    {"name": "Marinade", "slug": "marinade-finance", "category": "Liquid Staking",
     "chains": ["Solana"], "tvl": 1.5e9},
]


class TestDeFiLlamaFetcher:
    async def test_solana_tvl_signals(self):
        def handler(request):
            assert request.url.path == "/protocols"
            return httpx.Response(200, json=PROTOCOLS)

        async with mock_client(handler) as client:
            signals = await DeFiLlamaFetcher(client).fetch(RunConfig())

        assert [s.metric_name for s in signals] == ["jupiter_tvl", "marinade_finance_tvl"]
        assert signals[0].value == 2e9
        assert signals[0].unit == "USD"
        assert all(s.category == Category.DEFI for s in signals)

    async def test_max_protocols(self):
        def handler(request):
            return httpx.Response(200, json=PROTOCOLS)

        config = RunConfig(defillama=DeFiLlamaConfig(max_protocols=1))
        async with mock_client(handler) as client:
            signals = await DeFiLlamaFetcher(client).fetch(config)
        assert [s.metric_name for s in signals] == ["jupiter_tvl"]

    async def test_invalid_json_raises(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        async with mock_client(handler) as client:
            with pytest.raises(FetchError, match="invalid JSON"):
                await DeFiLlamaFetcher(client).fetch(RunConfig())


class TestDefaultFetchers:
    def test_one_per_source_with_unique_names(self):
        fetchers = default_fetchers()
        assert [f.name for f in fetchers] == ["github", "solana_rpc", "blog", "defillama"]
        assert {f.source for f in fetchers} == {
            SignalSource.GITHUB, SignalSource.SOLANA_RPC, SignalSource.BLOG, SignalSource.DEFILLAMA,
        }
