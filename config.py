"""Run configuration.

RunConfig is the immutable input every run consumes: source endpoints,
tracked programs, category keywords, LLM provider selection, timeouts and
retry counts. It is loaded once from a TOML file and never mutated. Secrets
(API keys, GitHub token) come from the environment or a .env file, never
from the TOML.

Usage:
    config = load_config("config.toml")
    config.timeout_for("github")
"""

import logging
import os
import pathlib
import tomllib
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.errors import ConfigError
from schemas.signal import Category
from utils.categories import DEFAULT_CATEGORY_KEYWORDS, normalize_category

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = pathlib.Path(__file__).parent / "config.toml"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class GitHubConfig(_Frozen):
    """GitHub repository search settings.

    Attributes:
        queries: Search terms. Each becomes one search request.
        days_back: Only repos created within this many days are searched.
        per_page: Results per query (GitHub caps this at 100).
        token: Optional token. Read from GITHUB_TOKEN when not set.
    """

    api_url: str = "https://api.github.com"
    queries: list[str] = Field(default_factory=lambda: ["solana"])
    days_back: int = Field(default=30, ge=1)
    per_page: int = Field(default=30, ge=1, le=100)
    token: str | None = Field(default_factory=lambda: os.environ.get("GITHUB_TOKEN") or None)


class TrackedProgram(_Frozen):
    """A Solana program whose transaction activity is counted."""

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    category: Category = Category.DEFI

    @field_validator("name")
    @classmethod
    def _slug(cls, value: str) -> str:
        return value.strip().lower().replace(" ", "_").replace("-", "_")

    @field_validator("category", mode="before")
    @classmethod
    def _normalize(cls, value):
        return normalize_category(value) if isinstance(value, str) else value


def _default_programs() -> list[TrackedProgram]:
    return [
        TrackedProgram(name="jupiter", address="JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4", category=Category.DEFI),
        TrackedProgram(name="raydium", address="675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8", category=Category.DEFI),
        TrackedProgram(name="orca", address="whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc", category=Category.DEFI),
        TrackedProgram(name="marinade", address="MarBmsSgKXdrN1egZf5sqe1TMai9K1rChYNDJgjq7aD", category=Category.DEFI),
    ]


class SolanaConfig(_Frozen):
    """Solana JSON-RPC settings.

    Attributes:
        rpc_url: JSON-RPC endpoint.
        tracked_programs: Programs whose signatures are paged and counted.
        page_limit: Signatures requested per getSignaturesForAddress page.
        max_pages: Upper bound on pages per program.
        sample_count: Performance samples averaged for TPS.
    """

    rpc_url: str = "https://api.mainnet-beta.solana.com"
    tracked_programs: list[TrackedProgram] = Field(default_factory=_default_programs)
    page_limit: int = Field(default=1000, ge=1, le=1000)
    max_pages: int = Field(default=3, ge=1)
    sample_count: int = Field(default=5, ge=1)


class BlogSource(_Frozen):
    name: str
    url: str


class BlogConfig(_Frozen):
    sources: list[BlogSource] = Field(default_factory=lambda: [
        BlogSource(name="Solana News", url="https://solana.com/news"),
        BlogSource(name="Helius Blog", url="https://www.helius.dev/blog"),
    ])
    max_titles: int = Field(default=10, ge=1)


class DeFiLlamaConfig(_Frozen):
    api_url: str = "https://api.llama.fi"
    min_tvl_usd: float = Field(default=1_000_000, ge=0)
    max_protocols: int = Field(default=25, ge=1)


class LLMConfig(_Frozen):
    """LLM provider selection.

    Attributes:
        provider: "anthropic", "openrouter" or "openai".
        model: Provider model id.
        max_tokens: Completion budget per call.
    """

    provider: Literal["anthropic", "openrouter", "openai"] = "openrouter"
    model: str = "anthropic/claude-sonnet-4.5"
    max_tokens: int = Field(default=8192, ge=1)


class RunConfig(_Frozen):
    """Immutable configuration for one run.

    Attributes:
        github, solana, blogs, defillama: Per-source settings.
        llm: Provider selection for both synthesis calls.
        category_keywords: Category value -> keywords used to classify
            free text (repo descriptions, article titles).
        ratio_pairs: (numerator, denominator) program names to compare.
        velocity_window_days: Look-back window for repo velocity.
        fetch_timeout_seconds: Default per-source fetch timeout.
        source_timeouts: Per-source overrides keyed by fetcher name.
        synthesis_retries: Extra attempts per LLM stage after the first.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    solana: SolanaConfig = Field(default_factory=SolanaConfig)
    blogs: BlogConfig = Field(default_factory=BlogConfig)
    defillama: DeFiLlamaConfig = Field(default_factory=DeFiLlamaConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    category_keywords: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CATEGORY_KEYWORDS.items()}
    )
    ratio_pairs: list[tuple[str, str]] = Field(default_factory=lambda: [("jupiter", "raydium")])
    velocity_window_days: int = Field(default=30, ge=1)
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    source_timeouts: dict[str, float] = Field(default_factory=dict)
    synthesis_retries: int = Field(default=2, ge=0)

    @field_validator("category_keywords")
    @classmethod
    def _known_categories(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for label in value:
            if normalize_category(label) == Category.OTHER and label.lower() != "other":
                raise ValueError(f"unknown category '{label}' in category_keywords")
        return value

    @field_validator("source_timeouts")
    @classmethod
    def _positive_timeouts(cls, value: dict[str, float]) -> dict[str, float]:
        for name, seconds in value.items():
            if seconds <= 0:
                raise ValueError(f"timeout for '{name}' must be positive")
        return value

    def timeout_for(self, source: str) -> float:
        """Return the fetch timeout for a fetcher name."""
        return self.source_timeouts.get(source, self.fetch_timeout_seconds)


def load_config(path: str | pathlib.Path | None = None) -> RunConfig:
    """Load a RunConfig from a TOML file.

    A missing default file yields the built-in defaults. A missing file that
    was asked for explicitly is an error.

    Args:
        path: TOML file to read. Defaults to config.toml next to this module.

    Returns:
        The validated, frozen RunConfig.

    Raises:
        ConfigError: If the file is missing, is not valid TOML, or fails
            validation.
    """
    explicit = path is not None
    config_path = pathlib.Path(path) if explicit else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.info("No config file at %s; using defaults.", config_path)
        return RunConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {config_path}: {exc}") from exc

    try:
        config = RunConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc

    logger.info("Loaded configuration from %s.", config_path)
    return config
