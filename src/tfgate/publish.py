# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Deliver the rendered report and the pass/fail signal."""

from __future__ import annotations

import json
import logging
import os
import ssl
import urllib.error
import urllib.request
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Final, Protocol
from urllib.parse import urlparse

from rich.markdown import Markdown

from .console import get_console_manager
from .errors import PublishError
from .logging import annotate, fail, ok
from .models import PolicyDecision

LOGGER = logging.getLogger(__name__)

DEFAULT_API_URL: Final[str] = "https://api.github.com"
_SUPPORTED_SCHEMES: Final[frozenset[str]] = frozenset({"https", "http"})
_USER_AGENT: Final[str] = "tfgate/1.0"
_REQUEST_TIMEOUT: Final[float] = 30.0

Transport = Callable[[urllib.request.Request, float], int]


class Publisher(Protocol):
    """Consume the single rendered report of a run."""

    def publish(self, report: str, decision: PolicyDecision) -> None:
        """Deliver ``report`` and mark the run according to ``decision``."""
        ...


class ConsolePublisher:
    """Print the report to the terminal through Rich."""

    def __init__(self, *, use_color: bool = True, use_emoji: bool = True, render_markdown: bool = True) -> None:
        self._use_color = use_color
        self._use_emoji = use_emoji
        self._render_markdown = render_markdown

    def publish(self, report: str, decision: PolicyDecision) -> None:
        console = get_console_manager().get(color=self._use_color, emoji=self._use_emoji)
        if self._render_markdown:
            console.print(Markdown(report))
        else:
            console.print(report, markup=False, highlight=False)
        if decision.should_fail:
            fail(f"Check failed: {decision.reason}", use_emoji=self._use_emoji, use_color=self._use_color)
        else:
            ok(f"Check passed: {decision.reason}", use_emoji=self._use_emoji, use_color=self._use_color)


def _default_transport(request: urllib.request.Request, timeout: float) -> int:
    opener = urllib.request.build_opener(urllib.request.HTTPSHandler(context=ssl.create_default_context()))
    with opener.open(request, timeout=timeout) as response:
        return int(response.status)


class GitHubReviewPublisher:
    """Post the report as a single ``COMMENT`` review on a pull request."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        pull_number: int,
        api_url: str = DEFAULT_API_URL,
        transport: Transport | None = None,
        timeout: float = _REQUEST_TIMEOUT,
    ) -> None:
        if urlparse(api_url).scheme.lower() not in _SUPPORTED_SCHEMES:
            raise PublishError(f"Unsupported API URL '{api_url}'")
        if repository.count("/") != 1:
            raise PublishError(f"Repository must be 'owner/name', got '{repository}'")
        self._token = token
        self._repository = repository
        self._pull_number = pull_number
        self._api_url = api_url.rstrip("/")
        self._transport = transport or _default_transport
        self._timeout = timeout

    @classmethod
    def from_environment(cls, env: Mapping[str, str] | None = None) -> GitHubReviewPublisher:
        """Build a publisher from the variables GitHub Actions exposes.

        Raises:
            PublishError: If the token, repository or pull request number is unavailable.
        """

        env = os.environ if env is None else env
        token = env.get("GITHUB_TOKEN", "")
        repository = env.get("GITHUB_REPOSITORY", "")
        if not token or not repository:
            raise PublishError("GITHUB_TOKEN and GITHUB_REPOSITORY must be set to publish a review")
        return cls(
            token=token,
            repository=repository,
            pull_number=_pull_number_from_event(env.get("GITHUB_EVENT_PATH", "")),
            api_url=env.get("GITHUB_API_URL", DEFAULT_API_URL),
        )

    @property
    def endpoint(self) -> str:
        """Return the review creation URL."""
        return f"{self._api_url}/repos/{self._repository}/pulls/{self._pull_number}/reviews"

    def build_request(self, report: str) -> urllib.request.Request:
        """Return the HTTP request creating the review."""

        body = json.dumps({"body": report, "event": "COMMENT"}).encode("utf-8")
        return urllib.request.Request(
            self.endpoint,
            data=body,
            method="POST",
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
                "User-Agent": _USER_AGENT,
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    def publish(self, report: str, decision: PolicyDecision) -> None:
        request = self.build_request(report)
        try:
            status = self._transport(request, self._timeout)
        except urllib.error.HTTPError as exc:
            raise PublishError(f"GitHub rejected the review ({exc.code}): {exc.reason}") from exc
        except (urllib.error.URLError, OSError) as exc:
            raise PublishError(f"Could not reach GitHub: {exc}") from exc
        if status >= 300:
            raise PublishError(f"Unexpected response status {status} creating review")
        LOGGER.debug("posted review to %s (status %d)", self.endpoint, status)
        if decision.should_fail:
            annotate("error", decision.reason)


def _pull_number_from_event(event_path: str) -> int:
    if not event_path:
        raise PublishError("GITHUB_EVENT_PATH is not set; cannot determine the pull request")
    try:
        event = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PublishError(f"Unable to read event payload {event_path}: {exc}") from exc
    pull_request = event.get("pull_request") if isinstance(event, dict) else None
    number = pull_request.get("number") if isinstance(pull_request, dict) else None
    if not isinstance(number, int) or isinstance(number, bool):
        raise PublishError("Event payload does not describe a pull request")
    return number


__all__ = [
    "ConsolePublisher",
    "DEFAULT_API_URL",
    "GitHubReviewPublisher",
    "Publisher",
    "Transport",
]
