"""Static asset download."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx

from ..errors import NetworkError
from ..utils import atomic_write_bytes


async def fetch_asset(
    url: str,
    dest: str | Path,
    timeout: float = 30.0,
    force: bool = False,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Download *url* to *dest*.

    Args:
        url: Asset URL.  Redirects are followed.
        dest: Destination file; parent directories are created.
        timeout: Overall timeout for the request in seconds.
        force: Download even if *dest* already has content.
        client: Optional preconfigured client (the caller keeps ownership).

    Returns:
        ``True`` if the asset was downloaded, ``False`` if an existing
        non-empty file was kept.

    Raises:
        NetworkError: If the download fails or the file cannot be written.
    """
    target = Path(dest)
    if not force and target.is_file() and target.stat().st_size > 0:
        return False

    try:
        if client is None:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
                follow_redirects=True,
            ) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.ConnectError as exc:
        raise NetworkError(f"Cannot connect to {url}: {exc}") from exc
    except httpx.TimeoutException as exc:
        raise NetworkError(f"Download of {url} timed out after {timeout}s") from exc
    except httpx.HTTPStatusError as exc:
        raise NetworkError(
            f"{url} returned HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise NetworkError(f"Download of {url} failed: {exc}") from exc

    try:
        await asyncio.to_thread(atomic_write_bytes, target, response.content)
    except OSError as exc:
        raise NetworkError(f"Cannot write {target}: {exc}") from exc
    return True
