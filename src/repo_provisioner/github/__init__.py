"""GitHub hosting API access for the provisioner."""

from repo_provisioner.github.api_client import GitHubApiClient, classify_api_error
from repo_provisioner.github.client import CreatedRepository, RepositoryHostClient

__all__ = [
    "GitHubApiClient",
    "classify_api_error",
    "CreatedRepository",
    "RepositoryHostClient",
]
