"""Source fetchers."""

from fetchers.base import Fetcher
from fetchers.blog import BlogFetcher
from fetchers.defillama import DeFiLlamaFetcher
from fetchers.github import GitHubFetcher
from fetchers.solana_rpc import SolanaRPCFetcher


def default_fetchers() -> list[Fetcher]:
    """One fetcher per source, in the order their signals are stored."""
    return [GitHubFetcher(), SolanaRPCFetcher(), BlogFetcher(), DeFiLlamaFetcher()]


__all__ = [
    "Fetcher",
    "GitHubFetcher",
    "SolanaRPCFetcher",
    "BlogFetcher",
    "DeFiLlamaFetcher",
    "default_fetchers",
]
