from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import aiohttp


async def get_json(
    session: aiohttp.ClientSession,
    url: str,
    *,
    params: Mapping[str, Any],
    timeout_s: float,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Raises aiohttp.ClientResponseError on non-2xx, other aiohttp.ClientError /
    asyncio.TimeoutError on transport problems and ValueError on a bad body.
    Callers translate these into their own error types.
    """
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    clean = {k: str(v) for k, v in params.items() if v is not None}
    async with session.get(url, params=clean, headers=headers or {}, timeout=timeout) as resp:
        resp.raise_for_status()
        # public-data endpoints are not consistent about Content-Type
        return await resp.json(content_type=None)
