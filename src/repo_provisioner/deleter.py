"""Idempotent repository deletion."""

import logging

from core.errors.exceptions import (
    ForbiddenError,
    NotFoundError,
    PipelineError,
    classify_exception,
    describe_error,
)
from core.logging.context import set_log_context
from core.logging.utilities import LoggedClass
from core.security.redaction import sanitize_error_message
from repo_provisioner import metrics
from repo_provisioner.github.client import RepositoryHostClient
from repo_provisioner.models import DeletionOutcome, DeletionResult, FailureKind, FailureReport


class RepositoryDeleter(LoggedClass):
    """
    Deletes a repository if it exists.

    Deleting an absent repository is a no-op (deleted=False), so running the
    teardown twice is safe. Calls are not retried; a transient failure is
    reported to the caller straight away.
    """

    def __init__(self, client: RepositoryHostClient):
        self.client = client
        super().__init__()

    async def delete_repository(self, owner: str, repo: str) -> DeletionOutcome:
        full_name = f"{owner}/{repo}"
        set_log_context(domain="delete", repository=full_name)
        self._log(logging.INFO, f"Attempting to delete repository: {full_name}")

        try:
            if not await self.client.repository_exists(owner, repo):
                return self._absent(full_name)

            await self.client.delete_repository(owner, repo)

        except NotFoundError:
            # Removed between the existence check and the delete call
            return self._absent(full_name)

        except ForbiddenError as e:
            return self._failed(
                FailureKind.PERMISSION_DENIED,
                f"Permission denied: Cannot delete {full_name}. Check token permissions.",
                e,
            )

        except Exception as e:
            return self._failed(
                FailureKind.DELETE_FAILED,
                f"Failed to delete repository: {describe_error(e)}",
                e,
            )

        metrics.record_deletion("deleted")
        self._log(
            logging.INFO,
            f"Repository {full_name} deleted successfully.",
            deleted=True,
        )
        return DeletionResult(deleted=True)

    def _absent(self, full_name: str) -> DeletionResult:
        metrics.record_deletion("absent")
        self._log(
            logging.INFO,
            f"Repository {full_name} does not exist, skipping deletion.",
            deleted=False,
        )
        return DeletionResult(deleted=False)

    def _failed(self, kind: FailureKind, message: str, error: Exception) -> FailureReport:
        metrics.record_deletion(kind.value)
        message = sanitize_error_message(message)
        self._log_exception(
            error,
            message,
            include_traceback=not isinstance(error, PipelineError),
            failure_kind=kind.value,
        )
        return FailureReport(
            kind=kind,
            message=message,
            error_category=classify_exception(error).value,
            attempts=1,
        )
