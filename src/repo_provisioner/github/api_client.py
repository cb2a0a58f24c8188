"""
GitHub REST API client.

Async HTTP client for the repository operations the provisioner needs, with
typed error classification. Retry and circuit breaking are NOT done here;
callers wrap calls in a ResilientExecutor where retrying is safe.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import aiohttp

from core.errors.exceptions import (
    AuthError,
    ConnectionError,
    ForbiddenError,
    NotFoundError,
    PermanentError,
    PipelineError,
    RepositoryExistsError,
    ServiceUnavailableError,
    ThrottlingError,
    ValidationError,
    wrap_exception,
)
from core.logging.utilities import LoggedClass
from core.security.redaction import mask_token, sanitize_error_message
from repo_provisioner.github.client import CreatedRepository, RepositoryHostClient

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


def _parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """Seconds to wait according to retry-after or x-ratelimit-reset headers."""
    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass

    reset = headers.get("x-ratelimit-reset")
    if reset:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass

    return None


def classify_api_error(
    status: int,
    url: str,
    body: Optional[Dict[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> PipelineError:
    """
    Create appropriate exception for an HTTP error response.

    Classifies GitHub status codes into error categories:
    - 401: Authentication error (bad credentials, not retryable)
    - 403: Forbidden, or rate limited when the rate-limit headers say so
    - 404: Not found (permanent)
    - 400/422: Validation error (permanent)
    - 429: Rate limit (transient)
    - 5xx: Server error (transient)
    - other 4xx: Client error (permanent)

    Args:
        status: HTTP status code
        url: Request URL for context
        body: Decoded JSON error body, if any
        headers: Response headers

    Returns:
        PipelineError subclass with proper classification
    """
    headers = headers or {}
    api_message = ""
    if body and isinstance(body.get("message"), str):
        api_message = f" - {body['message']}"
    context = {"http_status": status, "url": url}

    rate_limited = headers.get("x-ratelimit-remaining") == "0" or "retry-after" in headers

    if status == 401:
        return AuthError(f"Unauthorized (401): {url}{api_message}", context=context)

    if status == 429 or (status == 403 and rate_limited):
        return ThrottlingError(
            f"Rate limited ({status}): {url}{api_message}",
            retry_after=_parse_retry_after(headers),
            context=context,
        )

    if status == 403:
        return ForbiddenError(f"Forbidden (403): {url}{api_message}", context=context)

    if status == 404:
        return NotFoundError(f"Not found (404): {url}{api_message}", context=context)

    if status in (400, 422):
        # Keep the structured body: field-level errors identify name conflicts
        return ValidationError(
            f"Invalid request ({status}): {url}{api_message}",
            context={**context, "body": body or {}},
        )

    if status >= 500:
        return ServiceUnavailableError(
            f"Server error ({status}): {url}{api_message}", context=context
        )

    if 400 <= status < 500:
        return PermanentError(
            f"Client error ({status}): {url}{api_message}", context=context
        )

    return ServiceUnavailableError(
        f"HTTP error ({status}): {url}{api_message}", context=context
    )


def _is_name_conflict(body: Optional[Dict[str, Any]]) -> bool:
    """Whether a 422 body reports the repository name as already taken."""
    if not body:
        return False
    for error in body.get("errors") or []:
        if not isinstance(error, dict):
            continue
        if error.get("field") == "name" and error.get("code") in (
            "custom",
            "already_exists",
        ):
            return True
    return False


class GitHubApiClient(LoggedClass, RepositoryHostClient):
    """
    Async client for the GitHub REST API.

    Provides the repository operations used by the provisioner:
    - Generate a repository from a template
    - Check branch / repository existence
    - Apply branch protection
    - Delete a repository

    Usage:
        async with GitHubApiClient(token) as client:
            created = await client.create_repository_from_template(
                "acme", "service-template", "acme", "payments-api", True
            )

    Configuration:
        token: Personal access token or app installation token (never logged)
        api_url: API base URL (default: https://api.github.com)
        timeout_seconds: Request timeout (default: 30)
        max_concurrent: Maximum concurrent requests (default: 10)
    """

    log_component = "github_api"

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30,
        max_concurrent: int = 10,
    ):
        if not token:
            raise ValueError("GitHubApiClient requires a non-empty token")

        self._token = token
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_concurrent = max_concurrent

        self._session: Optional[aiohttp.ClientSession] = None
        self._semaphore: Optional[asyncio.Semaphore] = None

        super().__init__()

    def __repr__(self) -> str:
        return f"GitHubApiClient(api_url={self.api_url!r}, token={mask_token(self._token)!r})"

    async def __aenter__(self) -> "GitHubApiClient":
        """Create session on context enter."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close session on context exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Create aiohttp session if not exists."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_concurrent,
                limit_per_host=self.max_concurrent,
            )
            # Auth header is passed per request so it never lives on the session
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": API_VERSION,
                },
            )
            self._semaphore = asyncio.Semaphore(self.max_concurrent)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an API request and classify failures.

        Args:
            method: HTTP method
            endpoint: API path (joined with api_url)
            json_body: JSON body for POST/PUT requests

        Returns:
            Parsed JSON response ({} for empty bodies)

        Raises:
            PipelineError subclass: On HTTP errors, timeouts and connection errors
        """
        await self._ensure_session()

        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        request_headers = {"Authorization": f"Bearer {self._token}"}

        assert self._session is not None and self._semaphore is not None
        async with self._semaphore:
            try:
                async with self._session.request(
                    method,
                    url,
                    json=json_body,
                    headers=request_headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    text = await response.text()
                    data = self._decode_body(text)

                    if response.status >= 400:
                        error = classify_api_error(
                            response.status, url, data, response.headers
                        )
                        self._log(
                            logging.DEBUG,
                            "API request failed",
                            api_endpoint=endpoint,
                            api_method=method,
                            http_status=response.status,
                            error_category=error.category.value,
                        )
                        raise error

                    self._log(
                        logging.DEBUG,
                        "API request completed",
                        api_endpoint=endpoint,
                        api_method=method,
                        http_status=response.status,
                    )
                    return data

            except asyncio.TimeoutError as e:
                self._log(
                    logging.WARNING,
                    "API request timeout",
                    api_endpoint=endpoint,
                    api_method=method,
                    error_category="transient",
                )
                raise wrap_exception(
                    e,
                    message=f"Timeout after {self.timeout_seconds}s: {url}",
                    context={"api_endpoint": endpoint, "api_method": method},
                ) from e

            except aiohttp.ClientError as e:
                self._log_exception(
                    e,
                    "API connection error",
                    level=logging.WARNING,
                    include_traceback=False,
                    api_endpoint=endpoint,
                    api_method=method,
                )
                raise wrap_exception(
                    e,
                    default_class=ConnectionError,
                    message=f"Connection error: {sanitize_error_message(str(e))}",
                    context={"api_endpoint": endpoint, "api_method": method},
                ) from e

    @staticmethod
    def _decode_body(text: str) -> Dict[str, Any]:
        if not text:
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return {"message": text[:500]}
        return data if isinstance(data, dict) else {"items": data}

    # =========================================================================
    # Repository Endpoints
    # =========================================================================

    async def create_repository_from_template(
        self,
        template_owner: str,
        template_repo: str,
        new_owner: str,
        new_name: str,
        is_private: bool,
    ) -> CreatedRepository:
        """
        Generate a repository from a template (POST /repos/{t_owner}/{t_repo}/generate).

        Raises:
            RepositoryExistsError: The target name is already taken
            NotFoundError: Template missing or not marked as a template
        """
        endpoint = f"/repos/{template_owner}/{template_repo}/generate"
        try:
            data = await self._request(
                "POST",
                endpoint,
                json_body={
                    "owner": new_owner,
                    "name": new_name,
                    "private": is_private,
                    "description": (
                        f"Repository created from template {template_owner}/{template_repo}"
                    ),
                },
            )
        except ValidationError as e:
            if _is_name_conflict(e.context.get("body")):
                raise RepositoryExistsError(new_owner, new_name, cause=e) from e
            raise

        return CreatedRepository(
            url=data.get("html_url", ""),
            default_branch=data.get("default_branch") or "main",
            full_name=data.get("full_name", f"{new_owner}/{new_name}"),
        )

    async def branch_exists(self, owner: str, repo: str, branch: str) -> bool:
        """GET /repos/{owner}/{repo}/branches/{branch}; 404 means absent."""
        try:
            await self._request(
                "GET", f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}"
            )
        except NotFoundError:
            return False
        return True

    async def protect_branch(
        self, owner: str, repo: str, branch: str, policy: Dict[str, Any]
    ) -> None:
        """PUT /repos/{owner}/{repo}/branches/{branch}/protection."""
        await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}/protection",
            json_body=policy,
        )

    async def repository_exists(self, owner: str, repo: str) -> bool:
        """GET /repos/{owner}/{repo}; 404 means absent."""
        try:
            await self._request("GET", f"/repos/{owner}/{repo}")
        except NotFoundError:
            return False
        return True

    async def delete_repository(self, owner: str, repo: str) -> None:
        """DELETE /repos/{owner}/{repo}."""
        await self._request("DELETE", f"/repos/{owner}/{repo}")
