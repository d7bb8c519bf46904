"""Re-host Slack file uploads on a public CDN so IRC users can open them."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from slackirc.core.errors import UpstreamError


class CdnUploader:
    """Posts Slack private file URLs to the CDN and returns public URLs.

    The CDN downloads each file itself, authenticating to Slack with the bot
    token passed in ``X-Download-Authorization``.
    """

    def __init__(self, url: str, token: str, slack_token: str, *, timeout: float = 30.0) -> None:
        self._url = url
        self._token = token
        self._slack_token = slack_token
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
            "X-Download-Authorization": f"Bearer {self._slack_token}",
        }

    @staticmethod
    def _extract(data: Any) -> list[str]:
        files = data.get("files") if isinstance(data, dict) else data
        if not isinstance(files, list):
            return []
        urls: list[str] = []
        for item in files:
            if isinstance(item, dict):
                url = item.get("deployedUrl") or item.get("url")
                if url:
                    urls.append(str(url))
            elif isinstance(item, str):
                urls.append(item)
        return urls

    async def upload(self, urls: list[str]) -> list[str]:
        """Upload urls; raises UpstreamError on transport or HTTP failure."""
        if not urls:
            return []
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=urls, headers=self._headers())
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"CDN upload failed with status {exc.response.status_code}",
                code="cdn_status",
                details={"status": exc.response.status_code, "count": len(urls)},
                original_error=exc,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError(
                f"CDN upload failed: {exc}",
                code="cdn_error",
                details={"count": len(urls)},
                original_error=exc,
            ) from exc
        deployed = self._extract(data)
        logger.debug("CDN re-hosted {} of {} files", len(deployed), len(urls))
        return deployed
