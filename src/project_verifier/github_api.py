"""Minimal GitHub REST client for commit lookups and release updates."""

from __future__ import annotations

import json
import logging
from contextlib import suppress
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from project_verifier.errors import GitHubAPIError
from project_verifier.schemas import ReleaseInfo

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
_GITHUB_API_TIMEOUT_SECONDS = 20
_USER_AGENT = "project-verifier"


def _error_detail(exc: HTTPError) -> str:
    detail = ""
    with suppress(Exception):
        body = exc.read().decode("utf-8", errors="replace")
        parsed = json.loads(body) if body else {}
        if isinstance(parsed, dict):
            detail = str(parsed.get("message") or "").strip()
    return detail[:220]


class GitHubClient:
    """Thin wrapper over the handful of REST endpoints the phases call."""

    def __init__(self, token: str = "", *, api_url: str = DEFAULT_API_URL) -> None:
        self.token = str(token or "").strip()
        self.api_url = str(api_url or DEFAULT_API_URL).rstrip("/")

    def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> tuple[int, Any]:
        """Return ``(status, parsed_json)``; HTTP error statuses are returned, not raised."""
        url = f"{self.api_url}{path}"
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": _USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        data: bytes | None = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload).encode("utf-8")

        logger.debug("GitHub API %s %s", method.upper(), path)
        request_obj = Request(url, headers=headers, data=data, method=method.upper())
        try:
            with urlopen(request_obj, timeout=_GITHUB_API_TIMEOUT_SECONDS) as response:
                status = int(getattr(response, "status", 200))
                body_text = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            detail = _error_detail(exc)
            return exc.code, {"message": detail} if detail else {}
        except URLError as exc:
            reason = str(getattr(exc, "reason", exc) or "").strip()
            raise GitHubAPIError(f"Could not reach GitHub API: {reason or 'unknown error'}") from exc

        if not body_text.strip():
            return status, {}
        try:
            return status, json.loads(body_text)
        except json.JSONDecodeError as exc:
            raise GitHubAPIError(f"GitHub API returned invalid JSON: {exc}", status) from exc

    def latest_commit_sha(self, owner: str, repo: str) -> str:
        """Return the SHA of the most recent commit on the default branch."""
        path = f"/repos/{quote(owner)}/{quote(repo)}/commits?per_page=1"
        status, payload = self._request("GET", path)
        if status != 200:
            message = payload.get("message") if isinstance(payload, dict) else ""
            raise GitHubAPIError(f"HTTP {status} {message}".strip(), status)
        if not isinstance(payload, list) or not payload:
            raise GitHubAPIError("No commits found", status)
        sha = str(payload[0].get("sha") or "").strip() if isinstance(payload[0], dict) else ""
        if not sha:
            raise GitHubAPIError("Commit response has no sha", status)
        return sha

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> ReleaseInfo:
        path = f"/repos/{quote(owner)}/{quote(repo)}/releases/tags/{quote(tag)}"
        status, payload = self._request("GET", path)
        return _release_info(status, payload)

    def update_release(self, owner: str, repo: str, release_id: int, body: str) -> ReleaseInfo:
        path = f"/repos/{quote(owner)}/{quote(repo)}/releases/{int(release_id)}"
        status, payload = self._request("PATCH", path, {"body": body})
        return _release_info(status, payload)


def _release_info(status: int, payload: Any) -> ReleaseInfo:
    if status != 200 or not isinstance(payload, dict):
        return ReleaseInfo(status=status)
    return ReleaseInfo(
        status=status,
        id=payload.get("id"),
        tag_name=payload.get("tag_name"),
        body=payload.get("body"),
    )
