"""
Error taxonomy for the pipeline, publish protocol and voting rounds.

Every error carries an optional ``context`` dict (step, external call,
prompts) so the operator notification can say where things broke.
"""

from typing import Any


class ArtVoteError(Exception):
    """Base class for application errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def with_context(self, **context: Any) -> "ArtVoteError":
        """Attach extra context and return self (for re-raise chains)."""
        self.context.update(context)
        return self


class ConfigurationError(ArtVoteError):
    """Missing or invalid configuration. Fatal for the invocation."""


class CredentialError(ArtVoteError):
    """Stored token could not be decrypted or is malformed."""


class NotFoundError(ArtVoteError):
    """A required row does not exist."""


class CredentialNotFoundError(NotFoundError):
    """No stored credential for the requested token type."""


class RefreshFailedError(ArtVoteError):
    """The long-lived token refresh exchange was rejected."""


class GraphAPIError(ArtVoteError):
    """The graph API rejected a call."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.status_code = status_code
        self.response_body = response_body


class MediaCreationError(GraphAPIError):
    """Media container creation failed."""


class PublishError(GraphAPIError):
    """Publishing a container failed."""


class ContainerNotReadyError(PublishError):
    """Container processing ended in ERROR or did not finish in time."""


class FieldFetchError(GraphAPIError):
    """Fetching media fields (permalink, metrics) failed."""


class TelegramAPIError(ArtVoteError):
    """The Telegram Bot API returned ok=false or a non-2xx status."""


class CdnError(ArtVoteError):
    """Cloudinary upload or cleanup failed."""


class ContentGenerationError(ArtVoteError):
    """Prompt refinement or image generation failed."""


class DuplicateVoteError(ArtVoteError):
    """The voter already voted in the current round. Benign."""


class NoImagesError(ArtVoteError):
    """The voting pool is empty at winner selection."""


class PipelineError(ArtVoteError):
    """The daily post pipeline failed; context carries the prompts."""


# Errors that must abort a sequence even when raised inside a best-effort step
FATAL_ERRORS: tuple[type[Exception], ...] = (
    ConfigurationError,
    CredentialError,
    RefreshFailedError,
)
