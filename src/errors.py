"""Error taxonomy shared by the memory endpoints."""


class CoachError(Exception):
    """Base class for errors raised by the memory subsystem."""


class InvalidRequest(CoachError):
    """Missing or malformed input. Maps to HTTP 400; never retried."""


class UpstreamDegraded(CoachError):
    """A store read failed but a smaller result is still useful.

    Never surfaced to callers. The aggregator logs it and carries on with
    whatever reads succeeded.
    """


class UpstreamFailure(CoachError):
    """A store write failed. Maps to HTTP 500 with the store's message."""
