"""Publish a packaged project archive as a named revision."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from revision_engine.publish.client import RevisionClient
from revision_engine.publish.models import PublishOutcome, PublishResult
from revision_engine.revision.naming import validate_project_name, validate_revision_name

logger = logging.getLogger(__name__)


class RevisionPublisher:
    """Upload archives through a :class:`RevisionClient`.

    Publishing is idempotent on the server side: re-publishing identical
    content under the same revision name yields
    :attr:`PublishOutcome.EXISTING`, which callers treat as success.  The
    publisher never retries; transport failures propagate to the caller.
    """

    def __init__(self, client: RevisionClient) -> None:
        self._client = client

    def publish(
        self,
        project_name: str,
        identity: str,
        archive: Path | bytes,
        activation_time: datetime | None = None,
    ) -> PublishResult:
        """Publish *archive* as revision *identity* of *project_name*.

        Parameters
        ----------
        project_name:
            Target project on the server.
        identity:
            Revision name, typically from :func:`generate_default_revision`.
        archive:
            Path to the archive file, or the archive bytes.
        activation_time:
            Optional schedule-from instant: scheduled firings of this
            revision before it are suppressed.

        Raises
        ------
        InvalidProjectNameError, InvalidRevisionNameError
            Before any network call, for unusable names.
        TransportError
            Including :class:`ServerRejectedError` and
            :class:`RevisionConflictError`.
        """
        validate_project_name(project_name)
        validate_revision_name(identity)

        record, created = self._client.put_project_revision(project_name, identity, archive, activation_time)
        outcome = PublishOutcome.NEW if created else PublishOutcome.EXISTING
        if created:
            logger.info("Published revision %s of '%s' (sha256=%s).", identity, project_name, record.digest[:12])
        else:
            logger.info("Revision %s of '%s' already exists with identical content.", identity, project_name)
        return PublishResult(record=record, outcome=outcome)
