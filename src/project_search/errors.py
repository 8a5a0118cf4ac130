"""
Error taxonomy for the project store and search service.
"""


class ProjectSearchError(Exception):
    """Base exception for all project store and search errors."""

    code = "error"


class ValidationError(ProjectSearchError):
    """
    Input rejected before any write.

    Raised when:
    - title is empty or blank
    - budget is negative or not a finite number
    - a tag is not a non-blank string
    """

    code = "validation"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(ProjectSearchError):
    """An operation referenced a project id that does not exist."""

    code = "not_found"

    def __init__(self, project_id: int):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class PermissionDeniedError(ProjectSearchError):
    """The editor is not allowed to mutate the project."""

    code = "permission_denied"

    def __init__(self, project_id: int, editor_id: int | None):
        super().__init__(
            f"Editor {editor_id!r} may not edit project {project_id}"
        )
        self.project_id = project_id
        self.editor_id = editor_id


class PersistenceError(ProjectSearchError):
    """
    Transaction failure at the storage layer.

    The transaction has been rolled back by the time this is raised.
    """

    code = "persistence"


class ProviderUnavailableError(ProjectSearchError):
    """
    The embedding provider failed.

    Raised when:
    - no provider is configured
    - the call times out
    - the provider returns an error or a malformed vector
    """

    code = "provider_unavailable"


class EmptyQueryError(ProjectSearchError):
    """A search was called with empty or blank text."""

    code = "empty_query"
