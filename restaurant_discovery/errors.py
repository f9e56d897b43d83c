from __future__ import annotations


class DiscoveryError(Exception):
    """Base class for failures that reach the request boundary."""

    retryable: bool = False

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


# ── Place-search provider ────────────────────────────────────────────────


class ProviderUnavailable(DiscoveryError):
    """Live provider unreachable or answered with a non-2xx status."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status_code = status_code


class ProviderQuotaExceeded(ProviderUnavailable):
    """Provider answered 429."""


# ── Entity store ─────────────────────────────────────────────────────────


class StoreWriteFailed(DiscoveryError):
    """Upsert of a single record failed."""

    def __init__(self, place_id: str, message: str) -> None:
        super().__init__(message, details=f"place_id={place_id}")
        self.place_id = place_id


class StoreUnavailable(DiscoveryError):
    """The entity store could not be queried at all."""

    retryable = True


# ── Generative text service ──────────────────────────────────────────────


class GenerativeServiceFailure(DiscoveryError):
    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.retryable = retryable
