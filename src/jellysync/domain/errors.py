"""Error catalogue shared by the sync core and provider adapters.

Every error raised on purpose by jellysync derives from :class:`SyncError`.
Errors are grouped by kind so a worker can decide what to do with a failed
job without knowing the individual classes:

* configuration/argument errors point at a mistake upstream and are final;
* actor-resolution errors mean nobody can act on behalf of the request;
* external-service errors are transient and worth requeueing;
* consistency errors mean local and remote state disagree.

``retryable`` carries that decision.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Final

if TYPE_CHECKING:
    from collections.abc import Mapping


class SyncError(RuntimeError):
    """Base class of all sync errors."""

    retryable: ClassVar[bool] = False


class SyncConfigurationError(SyncError):
    """A programming or configuration mistake upstream."""


class SyncInvalidArg(SyncConfigurationError):
    """An argument has the wrong shape or value."""


class SyncInvalidEvent(SyncConfigurationError):
    """An external event cannot be interpreted."""


class SyncInvalidRequest(SyncConfigurationError):
    """An outbound request cannot be built from the given data."""


class SyncInvalidTemplate(SyncConfigurationError):
    """A contract template is malformed or references something that does not exist."""


class SyncInvalidType(SyncConfigurationError):
    """A contract has an unknown or missing type."""


class SyncNoCompatibleIntegration(SyncConfigurationError):
    """No registered integration supports the requested provider or operation."""


class SyncActorError(SyncError):
    """Nobody is available to act on behalf of a request."""


class SyncNoActor(SyncActorError):
    """The acting user does not exist or was not provided."""


class SyncOAuthError(SyncActorError):
    """OAuth is misconfigured for the current run."""


class SyncOAuthNoUserError(SyncActorError):
    """Neither the actor nor the default user have linked the provider."""


class SyncNoIntegrationAppCredentials(SyncActorError):
    """The integration token lacks the application id or secret."""


class SyncExternalServiceError(SyncError):
    """A call to an external service failed."""

    retryable: ClassVar[bool] = True

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        body: object = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.body = body


class SyncExternalRequestError(SyncExternalServiceError):
    """The external service kept failing (or could not be reached)."""


class SyncRateLimit(SyncExternalServiceError):
    """The external service kept rate limiting or timing out the request."""


class SyncNoExternalResource(SyncExternalServiceError):
    """The requested resource does not exist at the provider."""

    retryable: ClassVar[bool] = False


class SyncConsistencyError(SyncError):
    """Local and remote state disagree."""


class SyncNoElement(SyncConsistencyError):
    """A contract expected to exist in the store is missing."""


class SyncNoMatchingUser(SyncConsistencyError):
    """No local user matches an external identity."""


class SyncPermissionsError(SyncConsistencyError):
    """The acting user may not perform the operation."""


ERRORS: Final[Mapping[str, type[SyncError]]] = {
    error.__name__: error
    for error in (
        SyncExternalRequestError,
        SyncInvalidArg,
        SyncInvalidEvent,
        SyncInvalidRequest,
        SyncInvalidTemplate,
        SyncInvalidType,
        SyncNoActor,
        SyncNoCompatibleIntegration,
        SyncNoElement,
        SyncNoExternalResource,
        SyncNoIntegrationAppCredentials,
        SyncNoMatchingUser,
        SyncOAuthError,
        SyncOAuthNoUserError,
        SyncPermissionsError,
        SyncRateLimit,
    )
}


def is_retryable(error: BaseException) -> bool:
    """Return whether a failed job should be requeued rather than failed for good."""

    return isinstance(error, SyncError) and error.retryable


__all__ = [
    "ERRORS",
    "SyncActorError",
    "SyncConfigurationError",
    "SyncConsistencyError",
    "SyncError",
    "SyncExternalRequestError",
    "SyncExternalServiceError",
    "SyncInvalidArg",
    "SyncInvalidEvent",
    "SyncInvalidRequest",
    "SyncInvalidTemplate",
    "SyncInvalidType",
    "SyncNoActor",
    "SyncNoCompatibleIntegration",
    "SyncNoElement",
    "SyncNoExternalResource",
    "SyncNoIntegrationAppCredentials",
    "SyncNoMatchingUser",
    "SyncOAuthError",
    "SyncOAuthNoUserError",
    "SyncPermissionsError",
    "SyncRateLimit",
    "is_retryable",
]
