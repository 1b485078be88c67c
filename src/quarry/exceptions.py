"""
Error taxonomy for quarry.

Failures local to a single query or URL are recovered where they occur.
Only planning and synthesis failures (and an empty research run) end a job,
and the scheduler records those on the job instead of raising them.
"""


class QuarryError(Exception):
    """Base exception for quarry errors."""


# --- Provider response shape ---


class ValidationError(QuarryError):
    """A provider response does not match its expected shape."""


class SearchResponseError(ValidationError):
    """The top-level search response could not be parsed."""


# --- Transport ---


class TransientFetchError(QuarryError):
    """Network or timeout failure talking to a search or scrape provider."""


class SearchProviderError(TransientFetchError):
    """A search call failed (transport error or unusable response)."""

    def __init__(self, query: str, message: str):
        self.query = query
        super().__init__(f"Search failed for {query!r}: {message}")


# --- Model inference ---


class AdapterFailure(QuarryError):
    """A model-inference call errored or its output could not be used."""


class ModelAuthenticationError(AdapterFailure):
    """Raised when a model provider rejects the configured API key."""

    def __init__(self, provider: str, api_key_env: str):
        self.provider = provider
        self.api_key_env = api_key_env
        super().__init__(
            f"{provider} authentication failed. "
            f"Check that {api_key_env} is set to a valid API key."
        )


class ExtractionError(AdapterFailure):
    """Structured extraction could not recover a value of the expected shape."""


class PlanningError(AdapterFailure):
    """The planner could not produce an initial query list."""


class EvaluationError(AdapterFailure):
    """The gap evaluator failed."""


class RankingError(AdapterFailure):
    """Source relevance ranking failed."""


class SynthesisError(AdapterFailure):
    """Report synthesis failed."""


# --- Job level ---


class NoFindingsError(QuarryError):
    """The research budget was exhausted without a single usable finding."""

    def __init__(self, cycles: int):
        self.cycles = cycles
        super().__init__(
            f"No usable findings after {cycles} search cycle(s); "
            "nothing to synthesize."
        )


class InvalidTransitionError(QuarryError):
    """A job was asked to move to a state it cannot reach from its current one."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid job transition: {current} -> {requested}")
