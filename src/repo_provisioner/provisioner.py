"""
Repository provisioning state machine.

    REQUESTED -> CREATING -> CREATED -> DONE
                               |
                               +-> VERIFYING_BRANCH -> PROTECTING -> PROTECTED -> DONE
    any state -> FAILED

Creation is a single, unretried call: generating from a template is not
idempotent, and a duplicate name must fail immediately. Branch verification
and protection run together inside the ResilientExecutor, because a freshly
generated repository's default branch can take a while to appear. A 404 from
the protection call is treated the same as a missing branch.

When protection is requested and the breaker is not admitting calls, the
request fails before anything is created.
"""

import logging
import time
from typing import Callable, List, Optional

from core.errors.exceptions import (
    BranchNotReadyError,
    CircuitOpenError,
    NotFoundError,
    PipelineError,
    RetryError,
    classify_exception,
    describe_error,
)
from core.logging.context import set_log_context
from core.logging.utilities import LoggedClass
from core.resilience.executor import ResilientExecutor
from core.security.redaction import sanitize_error_message
from repo_provisioner import metrics
from repo_provisioner.github.client import CreatedRepository, RepositoryHostClient
from repo_provisioner.models import (
    BranchProtectionPolicy,
    FailureKind,
    FailureReport,
    ProvisioningOutcome,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningState,
)


class RepositoryProvisioner(LoggedClass):
    """
    Drives create -> verify -> protect for one provisioning request.

    Args:
        client: Hosting API collaborator
        executor: Retry/circuit-breaker engine used for verify+protect. Shared
            across invocations in a process so its breaker sees every workflow.
        policy: Branch protection to apply (default: BranchProtectionPolicy())
        clock: Clock for duration metrics
    """

    def __init__(
        self,
        client: RepositoryHostClient,
        executor: ResilientExecutor,
        policy: Optional[BranchProtectionPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.executor = executor
        self.policy = policy or BranchProtectionPolicy()
        self._clock = clock
        super().__init__()

    @property
    def circuit_name(self) -> str:
        return self.executor.breaker.name

    async def provision(self, request: ProvisioningRequest) -> ProvisioningOutcome:
        """
        Provision a repository from a template.

        Never raises for hosting-API or retry failures; those come back as a
        FailureReport. The report's kind tells apart "nothing was created"
        from "created but left unprotected".
        """
        run = _ProvisioningRun(self, request)
        started = self._clock()
        outcome = await run.execute()

        if isinstance(outcome, FailureReport):
            metrics.record_provisioning_outcome(outcome.kind.value, self._clock() - started)
        else:
            metrics.record_provisioning_outcome("success", self._clock() - started)
        return outcome


class _ProvisioningRun:
    """State for a single provision() call."""

    def __init__(self, provisioner: RepositoryProvisioner, request: ProvisioningRequest):
        self.provisioner = provisioner
        self.request = request
        self.state = ProvisioningState.REQUESTED
        self.history: List[ProvisioningState] = [ProvisioningState.REQUESTED]
        self.branch_verified = False

        set_log_context(domain="provision", repository=request.repository)

    def _transition(self, new_state: ProvisioningState) -> None:
        if new_state == self.state:
            return
        previous = self.state
        self.state = new_state
        self.history.append(new_state)
        set_log_context(stage=new_state.value)
        self.provisioner._log(
            logging.INFO,
            f"Provisioning {previous.value} -> {new_state.value}",
            provisioning_state=new_state.value,
            previous_state=previous.value,
        )

    def _fail(
        self,
        kind: FailureKind,
        message: str,
        error: BaseException,
        attempts: int = 0,
        repository_url: Optional[str] = None,
    ) -> FailureReport:
        failed_state = self.state
        self._transition(ProvisioningState.FAILED)
        report = FailureReport(
            kind=kind,
            message=sanitize_error_message(message),
            failed_state=failed_state,
            error_category=classify_exception(error).value,
            attempts=attempts,
            repository_url=repository_url,
            states=list(self.history),
        )
        self.provisioner._log_exception(
            error,
            report.message,
            include_traceback=not isinstance(error, PipelineError),
            provisioning_state=ProvisioningState.FAILED.value,
            previous_state=failed_state.value,
            failure_kind=kind.value,
            attempts=attempts,
            repository_url=repository_url,
        )
        return report

    async def execute(self) -> ProvisioningOutcome:
        request = self.request
        client = self.provisioner.client

        if request.protect_default_branch:
            failure = self._check_circuit()
            if failure is not None:
                return failure

        self._transition(ProvisioningState.CREATING)
        try:
            created = await client.create_repository_from_template(
                request.template_owner,
                request.template_repo,
                request.new_repo_owner,
                request.new_repo_name,
                request.is_private,
            )
        except Exception as e:
            return self._fail(
                FailureKind.NOT_CREATED,
                f"Failed to create repository {request.repository} "
                f"from template {request.template}: {describe_error(e)}",
                e,
                attempts=1,
            )

        self._transition(ProvisioningState.CREATED)
        self.provisioner._log(
            logging.INFO,
            f"Repository created: {created.url}",
            repository_url=created.url,
            branch=created.default_branch,
            template=request.template,
        )

        if request.protect_default_branch:
            failure = await self._protect(created)
            if failure is not None:
                return failure
            self._transition(ProvisioningState.PROTECTED)

        self._transition(ProvisioningState.DONE)
        return ProvisioningResult(
            repository_url=created.url,
            default_branch_name=created.default_branch,
            protected=request.protect_default_branch,
            states=list(self.history),
        )

    def _check_circuit(self) -> Optional[FailureReport]:
        """Refuse to create a repository the open breaker would leave unprotected."""
        breaker = self.provisioner.executor.breaker
        if breaker.allows_request():
            return None

        error = CircuitOpenError(breaker.name, breaker.retry_after)
        return self._fail(
            FailureKind.NOT_CREATED,
            f"Repository {self.request.repository} was not created: "
            f"{describe_error(error)}, retry after {error.retry_after:.0f}s",
            error,
            attempts=0,
        )

    async def _protect(self, created: CreatedRepository) -> Optional[FailureReport]:
        request = self.request
        branch = created.default_branch
        context = {
            "action": "protect_branch",
            "branch": branch,
            "repo": request.repository,
        }

        try:
            await self.provisioner.executor.execute(
                lambda: self._verify_and_protect(branch), context
            )
        except RetryError as e:
            return self._fail(
                FailureKind.CREATED_UNPROTECTED,
                f"Repository {created.url} was created but protecting branch "
                f"'{branch}' failed after {e.attempts} attempt(s): "
                f"{describe_error(e.original_error)}",
                e.original_error,
                attempts=e.attempts,
                repository_url=created.url,
            )
        except CircuitOpenError as e:
            return self._fail(
                FailureKind.CREATED_UNPROTECTED,
                f"Repository {created.url} was created but branch '{branch}' was "
                f"not protected: {describe_error(e)}, retry after "
                f"{e.retry_after:.0f}s",
                e,
                attempts=0,
                repository_url=created.url,
            )
        return None

    async def _verify_and_protect(self, branch: str) -> None:
        """One attempt: confirm the branch exists (until verified), then protect it."""
        request = self.request
        client = self.provisioner.client
        owner, repo = request.new_repo_owner, request.new_repo_name

        if not self.branch_verified:
            self._transition(ProvisioningState.VERIFYING_BRANCH)
            if not await client.branch_exists(owner, repo, branch):
                raise BranchNotReadyError(owner, repo, branch)
            self.branch_verified = True

        self._transition(ProvisioningState.PROTECTING)
        try:
            await client.protect_branch(
                owner, repo, branch, self.provisioner.policy.to_payload()
            )
        except NotFoundError as e:
            # The protection endpoint can lag behind the branch endpoint on a
            # new repository; re-verify on the next attempt
            self.branch_verified = False
            raise BranchNotReadyError(owner, repo, branch) from e
        self.provisioner._log(
            logging.INFO,
            f"Branch {branch} is now protected.",
            branch=branch,
            provisioning_state=ProvisioningState.PROTECTING.value,
        )
