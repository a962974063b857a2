"""Ingestion errors.

Every classified failure has its own type so the router can map it to a
status code without inspecting messages.
"""


class IngestionError(Exception):
    """Base class for everything the ingestion pipeline raises."""


class MalformedInputError(IngestionError):
    """The document is not an object with exactly one top-level key."""


class MissingProjectNameError(IngestionError):
    """Neither content.project nor content.quiz.project is set."""


class UnknownProjectError(IngestionError):
    """A submission names a project with no stored definition.

    Not a client mistake as such: the caller is expected to upload the
    definition and then retry the submission.
    """

    def __init__(self, project_name: str) -> None:
        super().__init__(f"No definition stored for project {project_name!r}")
        self.project_name = project_name


class DuplicateSubmissionError(IngestionError):
    """The submission id is already stored.

    Raised by the store and absorbed by the ingestion service, which
    reports it as a successful no-op.
    """

    def __init__(self, submission_id: str) -> None:
        super().__init__(f"Submission {submission_id!r} already stored")
        self.submission_id = submission_id


class StorageFaultError(IngestionError):
    """Unexpected persistence-layer failure."""
