"""Tests for provisioning request/result models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from core.errors.exceptions import ValidationError
from repo_provisioner.models import (
    BranchProtectionPolicy,
    DeletionResult,
    FailureKind,
    FailureReport,
    ProvisioningRequest,
    ProvisioningResult,
)

TOKEN = "ghp_" + "0123456789abcdefghijABCDEFGHIJklmnop"


def request_values(**overrides):
    values = {
        "token": TOKEN,
        "template_owner": "acme",
        "template_repo": "service-template",
        "new_repo_owner": "acme",
        "new_repo_name": "payments-api",
    }
    values.update(overrides)
    return values


class TestProvisioningRequest:
    def test_defaults(self):
        request = ProvisioningRequest(**request_values())

        assert request.is_private is False
        assert request.protect_default_branch is False
        assert request.repository == "acme/payments-api"
        assert request.template == "acme/service-template"

    def test_token_never_in_repr_or_str(self):
        request = ProvisioningRequest(**request_values())

        assert TOKEN not in repr(request)
        assert TOKEN not in str(request)
        assert TOKEN not in request.model_dump_json()
        assert request.token.get_secret_value() == TOKEN

    def test_strips_whitespace(self):
        request = ProvisioningRequest(**request_values(new_repo_name="  payments-api "))
        assert request.new_repo_name == "payments-api"

    def test_is_frozen(self):
        request = ProvisioningRequest(**request_values())
        with pytest.raises(PydanticValidationError):
            request.new_repo_name = "other"

    @pytest.mark.parametrize("name", ["a", "app", "payments-api", "x1-y2"])
    def test_valid_names(self, name):
        assert ProvisioningRequest(**request_values(new_repo_name=name)).new_repo_name == name

    @pytest.mark.parametrize(
        "name",
        ["Payments", "-api", "api-", "my_repo", "my repo", "a" * 101, ""],
    )
    def test_invalid_names(self, name):
        with pytest.raises(PydanticValidationError):
            ProvisioningRequest(**request_values(new_repo_name=name))

    def test_empty_token_rejected(self):
        with pytest.raises(PydanticValidationError):
            ProvisioningRequest(**request_values(token="   "))

    def test_create_converts_to_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            ProvisioningRequest.create(**request_values(new_repo_name="Bad_Name"))

        assert "new_repo_name" in str(exc_info.value)
        assert not exc_info.value.is_retryable
        assert TOKEN not in str(exc_info.value)


class TestBranchProtectionPolicy:
    def test_default_payload(self):
        assert BranchProtectionPolicy().to_payload() == {
            "required_status_checks": {"strict": True, "contexts": []},
            "enforce_admins": True,
            "required_pull_request_reviews": {"required_approving_review_count": 1},
            "restrictions": None,
        }

    def test_custom_contexts(self):
        payload = BranchProtectionPolicy(
            status_check_contexts=("ci/build",), required_approving_review_count=2
        ).to_payload()

        assert payload["required_status_checks"]["contexts"] == ["ci/build"]
        assert payload["required_pull_request_reviews"] == {
            "required_approving_review_count": 2
        }


class TestResults:
    def test_provisioning_result_outputs(self):
        result = ProvisioningResult(
            repository_url="https://github.com/acme/payments-api",
            default_branch_name="main",
        )

        assert result.success
        assert result.outputs() == {
            "repository_url": "https://github.com/acme/payments-api",
            "default_branch_name": "main",
        }

    def test_failure_report_distinguishes_partial_success(self):
        partial = FailureReport(
            kind=FailureKind.CREATED_UNPROTECTED,
            message="protect failed",
            repository_url="https://github.com/acme/payments-api",
        )
        total = FailureReport(kind=FailureKind.NOT_CREATED, message="create failed")

        assert not partial.success
        assert partial.repository_created
        assert not total.repository_created

    def test_deletion_outputs(self):
        assert DeletionResult(deleted=True).outputs() == {"deleted": "true"}
        assert DeletionResult(deleted=False).outputs() == {"deleted": "false"}
