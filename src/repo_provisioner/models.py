"""
Provisioning request, result and failure models.

ProvisioningRequest is validated once per invocation and then frozen. Results
and failure reports are produced exactly once and handed to the reporting
layer (issue comments, action outputs) without further mutation.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.errors.exceptions import ValidationError

# GitHub repository naming rules used for generated project repositories
REPO_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$")
MAX_REPO_NAME_LENGTH = 100


class ProvisioningState(str, Enum):
    """States of the repository provisioning state machine."""

    REQUESTED = "requested"
    CREATING = "creating"
    CREATED = "created"
    VERIFYING_BRANCH = "verifying_branch"
    PROTECTING = "protecting"
    PROTECTED = "protected"
    DONE = "done"
    FAILED = "failed"


class FailureKind(str, Enum):
    """
    What a failed invocation left behind.

    NOT_CREATED: nothing exists, creation can simply be retried.
    CREATED_UNPROTECTED: the repository exists but protection was not
        applied, so an operator must protect it by hand (do NOT recreate).
    PERMISSION_DENIED: the credential may not delete the repository.
    DELETE_FAILED: deletion failed for any other reason.
    """

    NOT_CREATED = "not_created"
    CREATED_UNPROTECTED = "created_unprotected"
    PERMISSION_DENIED = "permission_denied"
    DELETE_FAILED = "delete_failed"


class ProvisioningRequest(BaseModel):
    """Validated input for one provisioning invocation.

    Attributes:
        token: Hosting API credential. Never logged, excluded from repr.
        template_owner: Owner of the template repository
        template_repo: Name of the template repository
        new_repo_owner: Owner (user or org) of the repository to create
        new_repo_name: Name of the repository to create
        is_private: Create the repository as private
        protect_default_branch: Apply branch protection after creation
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    token: SecretStr = Field(..., repr=False)
    template_owner: str = Field(..., min_length=1)
    template_repo: str = Field(..., min_length=1)
    new_repo_owner: str = Field(..., min_length=1)
    new_repo_name: str = Field(..., min_length=1, max_length=MAX_REPO_NAME_LENGTH)
    is_private: bool = False
    protect_default_branch: bool = False

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: SecretStr) -> SecretStr:
        """Reject empty or whitespace-only credentials."""
        if not v.get_secret_value().strip():
            raise ValueError("token cannot be empty")
        return v

    @field_validator("new_repo_name")
    @classmethod
    def validate_repo_name(cls, v: str) -> str:
        """Lowercase alphanumerics and hyphens, alphanumeric at both ends."""
        if not REPO_NAME_PATTERN.match(v):
            raise ValueError(
                "Repository name must use lowercase letters, digits and hyphens, "
                "and start and end with an alphanumeric character"
            )
        return v

    @classmethod
    def create(cls, **values: Any) -> "ProvisioningRequest":
        """
        Build a request, converting validation failures to ValidationError.

        Raises:
            ValidationError: If any field is malformed (non-retryable)
        """
        try:
            return cls(**values)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(f"Invalid provisioning request: {problems}") from e

    @property
    def repository(self) -> str:
        """owner/name of the repository to create."""
        return f"{self.new_repo_owner}/{self.new_repo_name}"

    @property
    def template(self) -> str:
        return f"{self.template_owner}/{self.template_repo}"


@dataclass(frozen=True)
class BranchProtectionPolicy:
    """
    Branch protection applied to a new repository's default branch.

    Defaults: strict status checks with no required contexts, admins are
    included, one approving review, no push restrictions.
    """

    strict_status_checks: bool = True
    status_check_contexts: tuple = ()
    enforce_admins: bool = True
    required_approving_review_count: int = 1

    def to_payload(self) -> Dict[str, Any]:
        """Body for PUT /repos/{owner}/{repo}/branches/{branch}/protection."""
        return {
            "required_status_checks": {
                "strict": self.strict_status_checks,
                "contexts": list(self.status_check_contexts),
            },
            "enforce_admins": self.enforce_admins,
            "required_pull_request_reviews": {
                "required_approving_review_count": self.required_approving_review_count,
            },
            "restrictions": None,
        }


@dataclass(frozen=True)
class ProvisioningResult:
    """Successful provisioning outcome."""

    repository_url: str
    default_branch_name: str
    protected: bool = False
    states: List[ProvisioningState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    def outputs(self) -> Dict[str, str]:
        """Key/value outputs for the reporting layer."""
        return {
            "repository_url": self.repository_url,
            "default_branch_name": self.default_branch_name,
        }


@dataclass(frozen=True)
class FailureReport:
    """
    Failed invocation, with enough detail for a human to pick the recovery.

    repository_url is only set when the repository exists despite the failure
    (kind CREATED_UNPROTECTED).
    """

    kind: FailureKind
    message: str
    failed_state: Optional[ProvisioningState] = None
    error_category: Optional[str] = None
    attempts: int = 0
    repository_url: Optional[str] = None
    states: List[ProvisioningState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return False

    @property
    def repository_created(self) -> bool:
        return self.kind == FailureKind.CREATED_UNPROTECTED


@dataclass(frozen=True)
class DeletionResult:
    """Outcome of an idempotent delete."""

    deleted: bool

    @property
    def success(self) -> bool:
        return True

    def outputs(self) -> Dict[str, str]:
        return {"deleted": "true" if self.deleted else "false"}


ProvisioningOutcome = Union[ProvisioningResult, FailureReport]
DeletionOutcome = Union[DeletionResult, FailureReport]
