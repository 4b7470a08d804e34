from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from schooldesk.config import get_settings
from schooldesk.errors import FONT_LOAD_FAILED_MESSAGE, AssetFetchError


logger = logging.getLogger(__name__)

_ASSET_CACHE: dict[str, bytes] = {}


@dataclass
class AssetConfig:
    font_regular_url: str | None
    font_bold_url: str | None
    font_regular_path: Path | None = None
    font_bold_path: Path | None = None
    emblem_url: str | None = None
    timeout_seconds: int = 30


@dataclass(frozen=True)
class FontBundle:
    regular: bytes
    bold: bytes


class AssetLoader:
    """Fetches the Thai font pair and the fallback emblem.

    Downloads are cached per source for the life of the process; a missing
    regular font is fatal, a missing bold font falls back to the regular one.
    """

    def __init__(self, cfg: AssetConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self.cfg = cfg
        self._transport = transport
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls) -> 'AssetLoader':
        settings = get_settings()
        return cls(
            AssetConfig(
                font_regular_url=settings.font_regular_url,
                font_bold_url=settings.font_bold_url,
                font_regular_path=settings.font_regular_path,
                font_bold_path=settings.font_bold_path,
                emblem_url=settings.emblem_url or None,
                timeout_seconds=settings.asset_timeout_seconds,
            )
        )

    async def fonts(self) -> FontBundle:
        async with self._lock:
            try:
                regular = await self._load(self.cfg.font_regular_path, self.cfg.font_regular_url)
            except AssetFetchError as exc:
                logger.error('Failed to load Thai font: %s', exc)
                raise AssetFetchError(FONT_LOAD_FAILED_MESSAGE, source=exc.source) from exc

            try:
                bold = await self._load(self.cfg.font_bold_path, self.cfg.font_bold_url)
            except AssetFetchError as exc:
                logger.warning('Bold Thai font unavailable, using regular weight: %s', exc)
                bold = regular
        return FontBundle(regular=regular, bold=bold)

    async def emblem(self) -> bytes | None:
        if not self.cfg.emblem_url:
            return None
        try:
            return await self._load(None, self.cfg.emblem_url)
        except AssetFetchError as exc:
            logger.warning('Emblem load failed: %s', exc)
            return None

    async def _load(self, path: Path | None, url: str | None) -> bytes:
        if path is not None:
            return self._read_file(Path(path))
        if not url:
            raise AssetFetchError('no asset source configured')
        cached = _ASSET_CACHE.get(url)
        if cached is not None:
            return cached
        data = await self._download(url)
        _ASSET_CACHE[url] = data
        return data

    def _read_file(self, path: Path) -> bytes:
        key = str(path.resolve())
        cached = _ASSET_CACHE.get(key)
        if cached is not None:
            return cached
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise AssetFetchError(f'cannot read {path}: {exc}', source=str(path)) from exc
        if not data:
            raise AssetFetchError(f'empty asset file {path}', source=str(path))
        _ASSET_CACHE[key] = data
        return data

    async def _download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=max(5, int(self.cfg.timeout_seconds)),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AssetFetchError(f'GET {url} failed: {exc}', source=url) from exc
        if not response.content:
            raise AssetFetchError(f'GET {url} returned an empty body', source=url)
        return response.content


def clear_asset_cache() -> None:
    _ASSET_CACHE.clear()
