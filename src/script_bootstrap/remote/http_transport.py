from __future__ import annotations

import logging
from typing import Protocol

import httpx

from script_bootstrap.core.errors import NetworkError

log = logging.getLogger("script_bootstrap.transport")

GITHUB_RAW_ROOT = "https://raw.githubusercontent.com"


def github_raw_base_url(user: str, repo: str, branch: str) -> str:
    return f"{GITHUB_RAW_ROOT}/{user}/{repo}/{branch}"


class Transport(Protocol):
    """Fetches a remote path, relative to a fixed base, fully into memory."""

    def fetch(self, remote_path: str) -> bytes: ...


class HttpTransport:
    def __init__(
        self,
        base_url: str,
        timeout_s: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_s, follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    def url_for(self, remote_path: str) -> str:
        return f"{self.base_url}/{remote_path.lstrip('/')}"

    def fetch(self, remote_path: str) -> bytes:
        url = self.url_for(remote_path)
        try:
            r = self._client.get(url)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"Failed to download from {url}: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to download from {url}: {e}") from e

        content = r.content
        if not content:
            raise NetworkError(f"Empty response from {url}")

        log.debug("fetched url=%s bytes=%s", url, len(content))
        return content
