"""
Repository hosting collaborator interface.

The provisioning state machine and the deletion path depend only on this
interface. GitHubApiClient is the production implementation; tests substitute
in-memory fakes or mocks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class CreatedRepository:
    """Repository returned by a create-from-template call."""

    url: str
    default_branch: str
    full_name: str = ""


class RepositoryHostClient(ABC):
    """Operations the provisioner needs from a repository hosting API."""

    @abstractmethod
    async def create_repository_from_template(
        self,
        template_owner: str,
        template_repo: str,
        new_owner: str,
        new_name: str,
        is_private: bool,
    ) -> CreatedRepository:
        """
        Generate a new repository from a template repository.

        Raises:
            RepositoryExistsError: Target name already taken
            NotFoundError: Template does not exist or is not a template
            ThrottlingError, ConnectionError, AuthError: see core.errors
        """

    @abstractmethod
    async def branch_exists(self, owner: str, repo: str, branch: str) -> bool:
        """Return False on "not found"; raise on any other error."""

    @abstractmethod
    async def protect_branch(
        self, owner: str, repo: str, branch: str, policy: Dict[str, Any]
    ) -> None:
        """Apply a branch protection payload to a branch."""

    @abstractmethod
    async def repository_exists(self, owner: str, repo: str) -> bool:
        """Return False on "not found"; raise on any other error."""

    @abstractmethod
    async def delete_repository(self, owner: str, repo: str) -> None:
        """Delete a repository."""
