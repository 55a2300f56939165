"""Error taxonomy.

Every error the engine raises on purpose derives from NarrativeEngineError.
Per-source and per-proposal problems are recovered inside the run; only
SynthesisFailed, RunCancelled and ConfigError are meant to reach the caller.
"""


class NarrativeEngineError(Exception):
    """Base class for all engine errors."""


class ConfigError(NarrativeEngineError):
    """The run configuration could not be loaded or is invalid."""


class FetchError(NarrativeEngineError):
    """A source fetcher failed. Non-fatal: the source contributes nothing.

    Attributes:
        source: Name of the fetcher that failed.
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class InsufficientData(NarrativeEngineError):
    """A derived metric could not be computed from the available signals."""


class StoreFrozenError(NarrativeEngineError):
    """An insert was attempted after the signal store was frozen."""


class MalformedProposal(NarrativeEngineError):
    """LLM output could not be parsed into the expected proposal schema.

    Includes the raw response so callers can log it for debugging without
    having to catch and re-wrap the original exception themselves.

    Attributes:
        raw: The raw model output, when available.
        errors: Individual schema violations, one string per problem.
    """

    def __init__(self, message: str, raw: str = "", errors: list[str] | None = None):
        super().__init__(message)
        self.raw = raw
        self.errors = errors or []


class TransportError(NarrativeEngineError):
    """The LLM provider call failed at the network or API level."""


class SynthesisFailed(NarrativeEngineError):
    """An LLM synthesis stage exhausted its retries. Fatal for the run.

    Attributes:
        stage: "narrative" or "idea".
        attempts: Number of calls made before giving up.
        last_error: The error raised by the final attempt.
    """

    def __init__(self, stage: str, attempts: int, last_error: Exception | None):
        super().__init__(
            f"{stage} synthesis failed after {attempts} attempt(s): {last_error}"
        )
        self.stage = stage
        self.attempts = attempts
        self.last_error = last_error


class RunCancelled(NarrativeEngineError):
    """The run was cancelled at a phase boundary.

    Attributes:
        phase: The phase that was about to start.
    """

    def __init__(self, phase: str):
        super().__init__(f"Run cancelled before phase '{phase}'.")
        self.phase = phase
