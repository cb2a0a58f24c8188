"""
Entry point for the repository provisioner.

Usage:
    # Create a repository from a template and protect its default branch
    python -m repo_provisioner provision \\
        --template-owner acme --template-repo service-template \\
        --new-repo-owner acme --new-repo-name payments-api \\
        --private --protect-default-branch

    # Delete a repository (no-op if it does not exist)
    python -m repo_provisioner delete --owner acme --repo payments-api

The credential is read from --token or the GITHUB_TOKEN environment variable.
When GITHUB_OUTPUT is set (GitHub Actions), results are appended to that file
as key=value lines: repository_url and default_branch_name for provision,
deleted for delete.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional

from core.errors.exceptions import ConfigurationError, ValidationError
from core.logging.setup import generate_run_id, get_logger, setup_logging
from repo_provisioner.config import ProvisionerConfig
from repo_provisioner.deleter import RepositoryDeleter
from repo_provisioner.github.api_client import GitHubApiClient
from repo_provisioner.models import FailureReport, ProvisioningRequest
from repo_provisioner.provisioner import RepositoryProvisioner

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="repo_provisioner",
        description="Provision repositories from templates",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Hosting API token (default: GITHUB_TOKEN env var)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: src/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Console logging level (default: from config)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: from config, no file logging)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    provision = subparsers.add_parser(
        "provision", help="Create a repository from a template"
    )
    provision.add_argument("--template-owner", required=True)
    provision.add_argument("--template-repo", required=True)
    provision.add_argument("--new-repo-owner", required=True)
    provision.add_argument("--new-repo-name", required=True)
    provision.add_argument(
        "--private",
        action="store_true",
        help="Create the repository as private",
    )
    provision.add_argument(
        "--protect-default-branch",
        action="store_true",
        help="Protect the default branch once it exists",
    )

    delete = subparsers.add_parser("delete", help="Delete a repository if it exists")
    delete.add_argument("--owner", required=True)
    delete.add_argument("--repo", required=True)

    return parser.parse_args(argv)


def write_outputs(outputs: Dict[str, str]) -> None:
    """Append key=value outputs to the file named by GITHUB_OUTPUT, if set."""
    output_path = os.getenv("GITHUB_OUTPUT")
    if not output_path:
        return
    with open(output_path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(f"{key}={value}\n")


async def run_provision(
    args: argparse.Namespace, token: str, config: ProvisionerConfig
) -> int:
    try:
        request = ProvisioningRequest.create(
            token=token,
            template_owner=args.template_owner,
            template_repo=args.template_repo,
            new_repo_owner=args.new_repo_owner,
            new_repo_name=args.new_repo_name,
            is_private=args.private,
            protect_default_branch=args.protect_default_branch,
        )
    except ValidationError as e:
        logger.error(str(e))
        return EXIT_USAGE

    async with GitHubApiClient(
        request.token.get_secret_value(),
        api_url=config.api_url,
        timeout_seconds=config.timeout_seconds,
        max_concurrent=config.max_concurrent,
    ) as client:
        provisioner = RepositoryProvisioner(client, config.build_executor())
        outcome = await provisioner.provision(request)

    if isinstance(outcome, FailureReport):
        logger.error(outcome.message)
        if outcome.repository_created:
            logger.error(
                f"Repository {outcome.repository_url} exists but is NOT protected; "
                "protect it manually instead of re-running creation."
            )
        return EXIT_FAILED

    write_outputs(outcome.outputs())
    return EXIT_OK


async def run_delete(
    args: argparse.Namespace, token: str, config: ProvisionerConfig
) -> int:
    async with GitHubApiClient(
        token,
        api_url=config.api_url,
        timeout_seconds=config.timeout_seconds,
        max_concurrent=config.max_concurrent,
    ) as client:
        outcome = await RepositoryDeleter(client).delete_repository(args.owner, args.repo)

    if isinstance(outcome, FailureReport):
        logger.error(outcome.message)
        return EXIT_FAILED

    write_outputs(outcome.outputs())
    return EXIT_OK


def main(argv: Optional[list] = None) -> int:
    """Main entry point. Returns the process exit code."""
    global logger
    args = parse_args(argv)

    try:
        config = ProvisionerConfig.load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE

    console_level = (
        getattr(logging, args.log_level) if args.log_level else config.console_level
    )
    setup_logging(
        name="repo_provisioner",
        stage=args.command,
        domain=args.command,
        log_dir=args.log_dir or config.log_dir,
        json_format=config.json_logs,
        console_level=console_level,
        run_id=generate_run_id(),
    )

    # Re-get logger after setup to use new handlers
    logger = get_logger(__name__)

    token = args.token or os.getenv("GITHUB_TOKEN", "")
    if not token.strip():
        logger.error("A token is required: pass --token or set GITHUB_TOKEN")
        return EXIT_USAGE

    try:
        if args.command == "provision":
            return asyncio.run(run_provision(args, token, config))
        return asyncio.run(run_delete(args, token, config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_FAILED
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
