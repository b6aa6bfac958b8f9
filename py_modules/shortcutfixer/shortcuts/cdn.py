"""
Steam CDN icon download.

Used when a shortcut points at an icon hash that is missing from the local
steam/games cache. The hash in the shortcut's IconFile name is the same one
Steam's CDN serves the icon under.
"""
import asyncio
import logging
import os
import ssl
from typing import Optional

import aiohttp
import certifi

from ..errors import ShortcutFixerError

logger = logging.getLogger(__name__)

CDN_ICON_URL = "https://cdn.cloudflare.steamstatic.com/steamcommunity/public/images/apps/{app_id}/{icon_hash}.ico"

DOWNLOAD_TIMEOUT = 10


class IconDownloadError(ShortcutFixerError):
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Download failed ({url}): {reason}")


def icon_url(app_id: str, icon_hash: str) -> str:
    return CDN_ICON_URL.format(app_id=app_id, icon_hash=icon_hash)


class IconDownloader:
    """Downloads client icons into the local icon cache."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: int = DOWNLOAD_TIMEOUT):
        self._session = session
        self._owns_session = session is None
        self.timeout = timeout

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(ssl=ssl_context),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def download(self, app_id: str, icon_hash: str, dest_path: str) -> str:
        """
        Download an icon to dest_path. Returns the CDN URL.

        Raises:
            IconDownloadError: HTTP error, timeout, or write failure.
        """
        url = icon_url(app_id, icon_hash)
        session = await self._get_session()
        try:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise IconDownloadError(url, f"HTTP error: {resp.status}")
                data = await resp.read()
        except asyncio.TimeoutError:
            raise IconDownloadError(url, "timed out")
        except aiohttp.ClientError as e:
            raise IconDownloadError(url, str(e)) from e

        if not data:
            raise IconDownloadError(url, "empty response")

        tmp_path = dest_path + '.part'
        try:
            os.makedirs(os.path.dirname(dest_path), exist_ok=True)
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, dest_path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise IconDownloadError(url, f"Failed to write icon: {e}") from e

        logger.info(f"[QuickFix] Downloaded icon for app {app_id} to {dest_path}")
        return url
