"""Publishing revisions to a revision server."""

from revision_engine.publish.client import RevisionClient
from revision_engine.publish.models import (
    ARCHIVE_MEDIA_TYPE,
    ARCHIVE_TYPE,
    DIGEST_HEADER,
    ActiveProjectRecord,
    PublishOutcome,
    PublishResult,
    RevisionRecord,
)
from revision_engine.publish.publisher import RevisionPublisher

__all__ = [
    "ARCHIVE_MEDIA_TYPE",
    "ARCHIVE_TYPE",
    "DIGEST_HEADER",
    "ActiveProjectRecord",
    "PublishOutcome",
    "PublishResult",
    "RevisionClient",
    "RevisionPublisher",
    "RevisionRecord",
]
