"""Hosting service access through the `hub` CLI."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from time import sleep

from bottler.core.result import Err, Ok, Result
from bottler.core.structured import as_str_dict, get_list, get_str
from bottler.core.version import ToolVersion, parse_version
from bottler.platform.process import ProcessError, which
from bottler.platform.process import run as run_process
from bottler.services.eligibility import PullRequest
from bottler.services.errors import BottleError

HUB_TIMEOUT_SECONDS = 60.0
HUB_READ_RETRY_ATTEMPTS = 3
HUB_READ_RETRY_DELAY_SECONDS = 1.0

# `hub api` first shipped in 2.8.0.
HUB_API_VERSION = ToolVersion((2, 8, 0))

_HUB_VERSION_RE = re.compile(r"hub version ([0-9.]+)")


def _is_transient_hub_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "network is unreachable",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def run_hub_read(
    *,
    cwd: Path,
    cmd: list[str],
    message: str,
    timeout: float = HUB_TIMEOUT_SECONDS,
    retry_attempts: int = HUB_READ_RETRY_ATTEMPTS,
) -> Result[str, BottleError]:
    """Run an idempotent hub query, retrying transient network failures."""
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=cwd, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_hub_error(error):
            sleep(HUB_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(
            BottleError(
                kind="command_failed",
                message=message,
                hint=error.stderr.strip() or None,
            )
        )

    return Err(BottleError(kind="command_failed", message=message))


@dataclass(frozen=True, slots=True)
class HubCapabilities:
    """What the installed hub supports.

    Attributes:
        version: Detected version, None if it could not be parsed
        assign_and_label: `pull-request` accepts `-a` and `-l`
        api: `hub api` exists, needed for the open-PR search
    """

    version: ToolVersion | None
    assign_and_label: bool
    api: bool


def ensure_hub_available() -> Result[None, BottleError]:
    if which("hub") is None:
        return Err(
            BottleError(
                kind="tool_missing",
                message="Please install hub (brew install hub) before proceeding",
            )
        )
    return Ok(None)


def capabilities_for(version_output: str, *, min_version: str) -> HubCapabilities:
    m = _HUB_VERSION_RE.search(version_output)
    version = parse_version(m.group(1)) if m else None
    threshold = parse_version(min_version)
    supported = version is not None and threshold is not None and version.at_least(threshold)
    api = version is not None and version.at_least(HUB_API_VERSION)
    return HubCapabilities(version=version, assign_and_label=supported, api=api)


def detect_capabilities(*, cwd: Path, min_version: str) -> HubCapabilities:
    """Probe `hub --version` once; an unreadable version means no optional flags."""
    result = run_process(["hub", "--version"], cwd=cwd, timeout=HUB_TIMEOUT_SECONDS)
    output = result.value if isinstance(result, Ok) else ""
    return capabilities_for(output, min_version=min_version)


def parse_search_results(payload: str) -> Result[list[PullRequest], BottleError]:
    try:
        obj: object = json.loads(payload)
    except json.JSONDecodeError as e:
        return Err(BottleError(kind="invalid_output", message=f"invalid JSON from hub api: {e}"))

    data = as_str_dict(obj)
    items = get_list(data, "items") if data is not None else None
    if items is None:
        return Err(BottleError(kind="invalid_output", message="unexpected search payload"))

    prs: list[PullRequest] = []
    for item in items:
        entry = as_str_dict(item)
        if entry is None:
            continue
        title = get_str(entry, "title")
        url = get_str(entry, "html_url")
        if title is None or url is None:
            continue
        prs.append(PullRequest(title=title, url=url, state=get_str(entry, "state") or "open"))
    return Ok(prs)


class HubClient:
    """Pull request search and creation."""

    def __init__(self, *, capabilities: HubCapabilities, cwd: Path) -> None:
        self.capabilities = capabilities
        self.cwd = cwd

    @property
    def supports_assign_and_label(self) -> bool:
        return self.capabilities.assign_and_label

    def open_pull_requests(
        self, query: str, *, repo_slug: str
    ) -> Result[list[PullRequest], BottleError]:
        """Open PRs in `repo_slug` whose title mentions `query`."""
        if not self.capabilities.api:
            return Err(
                BottleError(
                    kind="tool_missing",
                    message=(
                        f"hub {self.capabilities.version or '(unknown version)'} cannot search "
                        f"pull requests; hub {HUB_API_VERSION} or newer is required"
                    ),
                    hint="brew upgrade hub",
                )
            )
        q = f"{query} in:title type:pr state:open repo:{repo_slug}"
        result = run_hub_read(
            cwd=self.cwd,
            cmd=["hub", "api", "-X", "GET", "search/issues", "-f", f"q={q}"],
            message=f"failed to search pull requests in {repo_slug}",
        )
        if isinstance(result, Err):
            return result
        return parse_search_results(result.value)

    def pull_request_args(
        self,
        *,
        head: str,
        message: str,
        assignee: str | None,
        label: str,
        browse: bool,
    ) -> list[str]:
        args = ["hub", "pull-request", "-h", head, "-m", message]
        if self.capabilities.assign_and_label:
            if assignee:
                args += ["-a", assignee]
            args += ["-l", label]
        if browse:
            args.append("--browse")
        return args

    def create_pull_request(
        self,
        *,
        repo_dir: Path,
        head: str,
        message: str,
        assignee: str | None,
        label: str,
        browse: bool,
    ) -> Result[str | None, BottleError]:
        """Open a PR from `head` ("<remote>:<branch>"); returns its URL when hub prints one."""
        cmd = self.pull_request_args(
            head=head, message=message, assignee=assignee, label=label, browse=browse
        )
        # Never killed on a timeout; GitHub may already have opened the PR.
        result = run_process(cmd, cwd=repo_dir, timeout=None)
        if isinstance(result, Err):
            e = result.error
            return Err(
                BottleError(
                    kind="command_failed",
                    message=f"failed to open pull request for {head}",
                    hint=e.stderr.strip() or None,
                )
            )

        urls = [ln.strip() for ln in result.value.splitlines() if ln.strip().startswith("https://")]
        return Ok(urls[-1] if urls else None)

