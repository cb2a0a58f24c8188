"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_domain: ContextVar[str] = ContextVar("domain", default="")
_stage: ContextVar[str] = ContextVar("stage", default="")
_run_id: ContextVar[str] = ContextVar("run_id", default="")
_repository: ContextVar[str] = ContextVar("repository", default="")


def set_log_context(
    domain: Optional[str] = None,
    stage: Optional[str] = None,
    run_id: Optional[str] = None,
    repository: Optional[str] = None,
) -> None:
    """
    Set logging context variables.

    Only the arguments that are not None are changed.

    Args:
        domain: Operation domain (provision, delete)
        stage: Current state machine stage
        run_id: Identifier of the current invocation
        repository: owner/name of the repository being worked on
    """
    if domain is not None:
        _domain.set(domain)
    if stage is not None:
        _stage.set(stage)
    if run_id is not None:
        _run_id.set(run_id)
    if repository is not None:
        _repository.set(repository)


def get_log_context() -> Dict[str, str]:
    """Get current logging context."""
    return {
        "domain": _domain.get(),
        "stage": _stage.get(),
        "run_id": _run_id.get(),
        "repository": _repository.get(),
    }


def clear_log_context() -> None:
    """Reset all context variables."""
    _domain.set("")
    _stage.set("")
    _run_id.set("")
    _repository.set("")
