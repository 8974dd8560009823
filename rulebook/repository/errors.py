class RulebookError(Exception):
    """Base class for errors raised by rulebook collaborators."""


class ValidationError(RulebookError, ValueError):
    """User-supplied value failed a validation rule."""


class PathValidationError(ValidationError):
    """Path is empty, reserved, traverses upwards or has no parent."""


class RepositoryNotFoundError(RulebookError, KeyError):
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"repository not found: {self.key}"


class GitSourceError(RulebookError):
    """Git operation failed (clone, fetch, status, ref lookup)."""


class CredentialError(RulebookError):
    """Token could not be validated, stored or loaded."""


class TokenNotFoundError(CredentialError):
    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "no GitHub token found. Configure a Personal Access Token in Settings → Update GitHub PAT"
        )


class PreparationError(RulebookError):
    """One or more repositories failed to prepare.

    ``prepared`` still holds a row for every entry so callers can render
    the list with the failed ones marked.
    """

    def __init__(self, message: str, prepared: list | None = None):
        super().__init__(message)
        self.prepared = prepared or []
