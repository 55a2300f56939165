"""Category normalization and keyword classification.

Upstream sources label sectors inconsistently ("Dexes", "decentralized
finance", "NFTs") and the LLM does the same in its proposals. Everything is
mapped onto the fixed Category enum here so grouping is stable.
"""

import re

from schemas.signal import Category

# Free-text labels seen from DeFiLlama, GitHub topics and LLM output.
_LABEL_ALIASES: dict[str, Category] = {
    "defi": Category.DEFI,
    "decentralized finance": Category.DEFI,
    "dexes": Category.DEFI,
    "dex": Category.DEFI,
    "lending": Category.DEFI,
    "liquid staking": Category.DEFI,
    "yield": Category.DEFI,
    "yield aggregator": Category.DEFI,
    "derivatives": Category.DEFI,
    "cdp": Category.DEFI,
    "launchpad": Category.DEFI,
    "rwa": Category.DEFI,
    "depin": Category.DEPIN,
    "decentralized physical infrastructure": Category.DEPIN,
    "ai": Category.AI,
    "ai agents": Category.AI,
    "artificial intelligence": Category.AI,
    "nft": Category.NFT,
    "nfts": Category.NFT,
    "nft marketplace": Category.NFT,
    "nft lending": Category.NFT,
    "non-fungible token": Category.NFT,
    "non-fungible tokens": Category.NFT,
    "payfi": Category.PAYFI,
    "payments": Category.PAYFI,
    "infrastructure": Category.INFRASTRUCTURE,
    "infra": Category.INFRASTRUCTURE,
    "oracle": Category.INFRASTRUCTURE,
    "bridge": Category.INFRASTRUCTURE,
    "services": Category.INFRASTRUCTURE,
    "developer tools": Category.INFRASTRUCTURE,
    "network performance": Category.INFRASTRUCTURE,
    "privacy": Category.PRIVACY,
}

DEFAULT_CATEGORY_KEYWORDS: dict[str, list[str]] = {
    Category.DEFI.value: [
        "defi", "dex", "swap", "amm", "lending", "perp", "perps", "liquidity",
        "yield", "staking", "stablecoin", "orderbook",
    ],
    Category.DEPIN.value: [
        "depin", "helium", "hivemapper", "sensor", "wireless", "physical infrastructure",
    ],
    Category.AI.value: [
        "ai", "agent", "agents", "llm", "inference", "machine learning", "gpt",
    ],
    Category.NFT.value: [
        "nft", "nfts", "collectible", "metaplex", "cnft", "compressed nft",
    ],
    Category.PAYFI.value: [
        "payfi", "payment", "payments", "merchant", "remittance", "solana pay",
    ],
    Category.INFRASTRUCTURE.value: [
        "rpc", "validator", "sdk", "indexer", "anchor", "firedancer",
        "infrastructure", "framework", "toolkit", "cli",
    ],
    Category.PRIVACY.value: [
        "privacy", "zk", "zero-knowledge", "confidential", "encrypted", "encryption",
    ],
}


def normalize_category(label: str | Category) -> Category:
    """Map a free-text sector label onto the Category enum.

    Matching is case-insensitive and accepts both enum values ("PayFi") and
    the aliases used by upstream sources. Unknown labels map to Other.

    Args:
        label: Raw label, or an existing Category (returned unchanged).

    Returns:
        The matching Category, or Category.OTHER.
    """
    if isinstance(label, Category):
        return label

    cleaned = label.strip().lower()
    for category in Category:
        if cleaned == category.value.lower():
            return category
    return _LABEL_ALIASES.get(cleaned, Category.OTHER)


def classify(text: str, keywords: dict[str, list[str]] | None = None) -> Category:
    """Pick the category whose keywords appear most often in text.

    Keywords match on word boundaries, so "ai" does not match "chain".
    Ties go to the category listed first in the keyword map.

    Args:
        text: Repo description, article title, or similar.
        keywords: Category value -> keyword list. Defaults to
            DEFAULT_CATEGORY_KEYWORDS.

    Returns:
        The best matching Category, or Category.OTHER when nothing matches.
    """
    keywords = keywords if keywords is not None else DEFAULT_CATEGORY_KEYWORDS
    lowered = text.lower()

    best = Category.OTHER
    best_hits = 0
    for label, words in keywords.items():
        hits = sum(1 for word in words if _contains_word(lowered, word.lower()))
        if hits > best_hits:
            best = normalize_category(label)
            best_hits = hits
    return best


def _contains_word(text: str, word: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(word)}(?![a-z0-9])", text) is not None
