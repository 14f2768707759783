"""Getting a source tree onto local disk: local path, git clone, or GitHub contents API."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

import httpx

from apiscout.errors import AcquireError

if TYPE_CHECKING:
    from apiscout.config import ScanConfig

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


def clone_repository(repo_url: str, dest: Path) -> None:
    try:
        subprocess.run(
            ["git", "clone", "--depth", "1", repo_url, str(dest)],
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise AcquireError("git executable not found") from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip().splitlines()
        raise AcquireError(f"git clone failed: {detail[-1] if detail else 'incorrect URL'}", repo_url) from exc


def contents_api_url(repo_url: str) -> str:
    """https://github.com/owner/repo(.git) -> https://api.github.com/repos/owner/repo/contents"""
    url = repo_url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    prefix = "https://github.com/"
    if not url.startswith(prefix) or url[len(prefix):].count("/") != 1:
        raise AcquireError("not a GitHub repository URL", repo_url)
    return f"{GITHUB_API}/repos/{url[len(prefix):]}/contents"


def fetch_repo_files(
    repo_url: str,
    auth_token: str,
    dest: Path,
    transport: Optional[httpx.BaseTransport] = None,
) -> int:
    """Download every file of the default branch through the contents API.

    Returns the number of files written.
    """
    headers = {
        "Authorization": f"token {auth_token}",
        "Accept": "application/vnd.github.v3+json",
    }
    api_url = contents_api_url(repo_url)
    with httpx.Client(headers=headers, timeout=30.0, transport=transport, follow_redirects=True) as client:
        return _fetch_dir(client, api_url, dest)


def _fetch_dir(client: httpx.Client, url: str, dest: Path) -> int:
    dest.mkdir(parents=True, exist_ok=True)
    written = 0
    for item in _listing(client, url):
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name or "/" in name or name in (".", ".."):
            continue
        if item.get("type") == "file" and isinstance(item.get("download_url"), str):
            (dest / name).write_bytes(_get(client, item["download_url"]).content)
            written += 1
        elif item.get("type") == "dir" and isinstance(item.get("url"), str):
            written += _fetch_dir(client, item["url"], dest / name)
    return written


def _listing(client: httpx.Client, url: str) -> list:
    try:
        entries = _get(client, url).json()
    except ValueError as exc:
        raise AcquireError("GitHub API returned invalid JSON", url) from exc
    if not isinstance(entries, list):
        raise AcquireError("GitHub API did not return a directory listing", url)
    return entries


def _get(client: httpx.Client, url: str) -> httpx.Response:
    try:
        resp = client.get(url)
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise AcquireError(f"GitHub API returned {exc.response.status_code}", url) from exc
    except httpx.HTTPError as exc:
        raise AcquireError(f"GitHub API request failed ({exc})", url) from exc
    return resp


@contextmanager
def acquire(config: ScanConfig) -> Iterator[Path]:
    """Yield the local directory to scan; temporary checkouts are removed on exit."""
    if not config.repo_url:
        root = Path(config.directory_to_scan).expanduser().resolve()
        if not root.is_dir():
            raise AcquireError("directory to scan does not exist", root)
        yield root
        return

    tmp = Path(tempfile.mkdtemp(prefix="apiscout-"))
    try:
        checkout = tmp / "repo"
        if config.github_token:
            count = fetch_repo_files(config.repo_url, config.github_token, checkout)
            logger.info("fetched %d files from %s", count, config.repo_url)
        else:
            clone_repository(config.repo_url, checkout)
        root = (checkout / config.directory_to_scan).resolve()
        if not root.is_dir():
            raise AcquireError("directory to scan does not exist in repository", config.directory_to_scan)
        yield root
    finally:
        shutil.rmtree(tmp, ignore_errors=True)
