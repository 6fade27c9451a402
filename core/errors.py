"""
Errors raised by the harvesting pipeline.

Transient failures (network, non-JSON body, Crom-reported errors) are retried
by retry_with_backoff(); the others stop the operation that raised them.
"""


class CromError(RuntimeError):
    """Base class for failures talking to the Crom API."""


class CromQueryError(CromError):
    """Crom answered with a non-empty "errors" list. Retryable."""

    def __init__(self, errors):
        self.errors = errors
        super().__init__(f"Crom returned error(s): {errors}")


class CromContractError(CromError):
    """A well-formed response is missing keys the pipeline depends on. Fatal."""


class RetryExhaustedError(CromError):
    """Every attempt of a retried operation failed."""


class ConfigurationError(ValueError):
    """The requested options cannot produce a meaningful result."""
