"""
Review API — GitHub pull requests over the REST API.

Only the two calls the sync needs: list open pull requests and create one.
Non-success responses raise ReviewApiError carrying the HTTP status, so
callers can recognise a 422 (e.g. "No commits between master and
sync-packages-from-core") without parsing message text.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import ReviewApiError

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_PAGES = 20


class GitHubPullRequests:
    """Pull request client for one token."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        client: Optional[httpx.Client] = None,
    ):
        self.token = token
        self.api_base = api_url.rstrip("/")
        self._client = client or httpx.Client(timeout=30.0)

    def __enter__(self) -> "GitHubPullRequests":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "User-Agent": "package-sync/1.0",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text[:200]
        message = data.get("message", "") if isinstance(data, dict) else ""
        errors = data.get("errors") if isinstance(data, dict) else None
        if errors:
            details = "; ".join(
                e.get("message", str(e)) if isinstance(e, dict) else str(e)
                for e in errors
            )
            return f"{message} ({details})" if message else details
        return message or resp.text[:200]

    def list_open_pull_requests(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        """All open pull requests on owner/repo."""
        url = f"{self.api_base}/repos/{owner}/{repo}/pulls"
        pulls: List[Dict[str, Any]] = []

        for page in range(1, MAX_PAGES + 1):
            resp = self._client.get(
                url,
                headers=self._get_headers(),
                params={"state": "open", "per_page": PER_PAGE, "page": page},
            )
            if resp.status_code != 200:
                raise ReviewApiError(resp.status_code, self._error_message(resp))

            batch = resp.json()
            pulls.extend(batch)
            if len(batch) < PER_PAGE:
                break

        logger.debug(f"{owner}/{repo}: {len(pulls)} open pull request(s)")
        return pulls

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str,
    ) -> Dict[str, Any]:
        """Open a pull request and return the API representation."""
        url = f"{self.api_base}/repos/{owner}/{repo}/pulls"
        resp = self._client.post(
            url,
            headers=self._get_headers(),
            json={"title": title, "head": head, "base": base, "body": body},
        )
        if resp.status_code != 201:
            raise ReviewApiError(resp.status_code, self._error_message(resp))

        result = resp.json()
        logger.debug(f"{owner}/{repo}: created pull request #{result.get('number')}")
        return result
