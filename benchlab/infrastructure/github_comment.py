import json
import logging
import os
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
COMMENTS_PER_PAGE = 50
PR_NUMBER_ENV = "BENCHLAB_PR_NUMBER"


class GitHubCommentError(Exception):
    pass


@dataclass(frozen=True)
class GitHubContext:
    token: str
    owner: str
    repo: str
    pr_number: int


def _pr_number_from_event(event_path: str) -> int | None:
    try:
        with open(event_path) as f:
            event = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Cannot read GitHub event payload {event_path}: {e}")
        return None

    if not isinstance(event, dict):
        return None

    pull_request = event.get("pull_request")
    if isinstance(pull_request, dict) and pull_request.get("number"):
        return int(pull_request["number"])

    # issue_comment events carry the PR under "issue"
    issue = event.get("issue")
    if isinstance(issue, dict) and issue.get("pull_request") and issue.get("number"):
        return int(issue["number"])

    return None


def detect_github_context(env: dict[str, str] | None = None) -> GitHubContext | None:
    env = dict(os.environ) if env is None else env

    token = env.get("GITHUB_TOKEN")
    repository = env.get("GITHUB_REPOSITORY")
    if not token or not repository:
        return None

    owner, _, repo = repository.partition("/")
    if not owner or not repo:
        return None

    pr_number = None
    event_path = env.get("GITHUB_EVENT_PATH")
    if event_path:
        pr_number = _pr_number_from_event(event_path)

    if pr_number is None and env.get(PR_NUMBER_ENV):
        try:
            pr_number = int(env[PR_NUMBER_ENV])
        except ValueError:
            logger.warning(f"Ignoring non-numeric {PR_NUMBER_ENV}: {env[PR_NUMBER_ENV]}")

    if not pr_number:
        return None

    return GitHubContext(token=token, owner=owner, repo=repo, pr_number=pr_number)


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }


async def find_existing_comment(
    client: httpx.AsyncClient, ctx: GitHubContext, marker: str
) -> int | None:
    url = f"{API_BASE}/repos/{ctx.owner}/{ctx.repo}/issues/{ctx.pr_number}/comments"
    page = 1

    while True:
        response = await client.get(
            url,
            params={"per_page": COMMENTS_PER_PAGE, "page": page},
            headers=_headers(ctx.token),
        )
        if response.status_code >= 400:
            logger.warning(
                f"Failed to list PR comments: {response.status_code} {response.text}"
            )
            return None

        comments: list[dict[str, Any]] = response.json()
        for comment in comments:
            if marker in (comment.get("body") or ""):
                return int(comment["id"])

        if len(comments) < COMMENTS_PER_PAGE:
            return None
        page += 1


async def upsert_pr_comment(
    ctx: GitHubContext,
    body: str,
    marker: str,
    client: httpx.AsyncClient | None = None,
) -> None:
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))

    try:
        existing_id = await find_existing_comment(client, ctx, marker)

        if existing_id is not None:
            response = await client.patch(
                f"{API_BASE}/repos/{ctx.owner}/{ctx.repo}/issues/comments/{existing_id}",
                json={"body": body},
                headers=_headers(ctx.token),
            )
            action = "update"
        else:
            response = await client.post(
                f"{API_BASE}/repos/{ctx.owner}/{ctx.repo}/issues/{ctx.pr_number}/comments",
                json={"body": body},
                headers=_headers(ctx.token),
            )
            action = "create"

        if response.status_code >= 400:
            logger.warning(
                f"Failed to {action} PR comment: {response.status_code} {response.text}"
            )
        else:
            logger.info(f"PR comment {action}d on #{ctx.pr_number}")
    except httpx.HTTPError as e:
        raise GitHubCommentError(f"GitHub request failed: {e}")
    finally:
        if owns_client:
            await client.aclose()
