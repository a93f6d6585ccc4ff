"""
PR Deduplication — Find an already open sync pull request.

The check fails open: if the API can't be queried we report no matches
and let the create call surface any real problem.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .review import GitHubPullRequests

logger = logging.getLogger(__name__)


def pull_request_title(source_name: str) -> str:
    """Title convention shared by every sync pull request from a source."""
    return f"Sync package from {source_name} Repo"


def find_open_sync_pull_requests(
    review: GitHubPullRequests,
    owner: str,
    repo: str,
    title: str,
) -> List[Dict[str, Any]]:
    """Open pull requests on owner/repo whose title contains title."""
    try:
        pulls = review.list_open_pull_requests(owner, repo)
    except Exception as e:
        logger.warning(
            f"Could not list pull requests on {owner}/{repo}, assuming none open: {e}"
        )
        return []

    return [pr for pr in pulls if title in (pr.get("title") or "")]
