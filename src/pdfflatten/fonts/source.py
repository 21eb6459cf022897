# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Font byte acquisition.

A font location is one of:

- ``package:<name>``: a font shipped in ``pdfflatten/resources/fonts``
- ``http://...`` / ``https://...``: fetched with aiohttp
- anything else: a filesystem path
"""

from __future__ import annotations

import asyncio
import logging
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ..exceptions import FontAcquisitionError
from .constants import PACKAGE_SCHEME

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)

_HTTP_SCHEMES = ("http://", "https://")


@runtime_checkable
class FontSource(Protocol):
    """Protocol for font byte providers."""

    async def fetch(self, location: str) -> bytes:
        """Return the raw bytes of the font at location.

        Raises:
            FontAcquisitionError: If the bytes cannot be obtained.
        """
        ...


class FileFontSource:
    """Reads fonts from disk or from the bundled font resources."""

    def __init__(self, base_dir: Path | None = None) -> None:
        """Initialize FileFontSource.

        Args:
            base_dir: Directory relative paths are resolved against.
        """
        self._base_dir = base_dir

    def _resolve(self, location: str) -> Path:
        path = Path(location).expanduser()
        if self._base_dir is not None and not path.is_absolute():
            path = self._base_dir / path
        return path

    async def fetch(self, location: str) -> bytes:
        if location.startswith(PACKAGE_SCHEME):
            name = location[len(PACKAGE_SCHEME) :]
            return await asyncio.to_thread(_read_package_font, name)

        path = self._resolve(location)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise FontAcquisitionError(f"Cannot read font file {path}: {e}") from e
        logger.debug("Read font %s (%d bytes)", path, len(data))
        return data


def _read_package_font(name: str) -> bytes:
    try:
        font_ref = resources.files("pdfflatten") / "resources" / "fonts" / name
        return font_ref.read_bytes()
    except Exception as e:
        raise FontAcquisitionError(
            f"Bundled font '{name}' is not available; "
            "pass an explicit font location instead"
        ) from e


class HttpFontSource:
    """Downloads fonts over HTTP(S).

    Can be used as an async context manager to share one session
    across several fetches; otherwise a session is opened per fetch.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize HttpFontSource.

        Args:
            timeout: Total request timeout in seconds.
        """
        import aiohttp as _aiohttp

        self._aiohttp = _aiohttp
        self._timeout = _aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpFontSource:
        self._session = self._aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def fetch(self, location: str) -> bytes:
        if self._session is not None:
            return await self._get(self._session, location)
        async with self._aiohttp.ClientSession(timeout=self._timeout) as session:
            return await self._get(session, location)

    async def _get(self, session: aiohttp.ClientSession, url: str) -> bytes:
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise FontAcquisitionError(
                        f"Font download failed (status {response.status}): {url}"
                    )
                data = await response.read()
        except self._aiohttp.ClientError as e:
            raise FontAcquisitionError(f"Font download failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise FontAcquisitionError(f"Font download timed out: {url}") from e

        if not data:
            raise FontAcquisitionError(f"Font download returned no data: {url}")
        logger.debug("Downloaded font %s (%d bytes)", url, len(data))
        return data


class DefaultFontSource:
    """Dispatches to the file or HTTP source based on the location."""

    def __init__(
        self,
        file_source: FontSource | None = None,
        http_source: FontSource | None = None,
    ) -> None:
        self._file_source = file_source or FileFontSource()
        self._http_source = http_source

    async def fetch(self, location: str) -> bytes:
        if location.lower().startswith(_HTTP_SCHEMES):
            if self._http_source is None:
                self._http_source = HttpFontSource()
            return await self._http_source.fetch(location)
        return await self._file_source.fetch(location)
