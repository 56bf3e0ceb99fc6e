import asyncio
import logging
import socket
from typing import Any, Optional

from aiohttp import ClientSession, ClientTimeout, TCPConnector
from aiohttp.client_exceptions import ClientError, ContentTypeError

from stremio_jackett.core.exceptions import CollaboratorUnavailable

log = logging.getLogger(__name__)


class AsyncHTTPSession:
    """Shared aiohttp session for every upstream collaborator.

    Unlike a bare ``ClientSession`` every failure (connect error, timeout,
    non-2xx status, undecodable body) surfaces as ``CollaboratorUnavailable``
    tagged with the collaborator name, so callers only need one except clause.
    """

    def __init__(self, default_timeout: float = 10.0):
        self.default_timeout = default_timeout
        self.session: Optional[ClientSession] = None

    async def _ensure_session(self) -> ClientSession:
        if not self.session or self.session.closed:
            connector = TCPConnector(limit=50, limit_per_host=15, family=socket.AF_INET)
            self.session = ClientSession(
                connector=connector,
                trust_env=True,
                timeout=ClientTimeout(total=self.default_timeout),
                headers={
                    "User-Agent": "stremio-jackett/1.1 (+aiohttp)",
                    "Accept": "*/*",
                    "Accept-Encoding": "gzip",
                },
            )
        return self.session

    async def get_text(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        collaborator: str = "http",
    ) -> str:
        session = await self._ensure_session()
        custom_timeout = ClientTimeout(total=timeout or self.default_timeout)
        try:
            async with session.get(url, params=params, timeout=custom_timeout) as resp:
                if resp.status != 200:
                    raise CollaboratorUnavailable(collaborator, f"HTTP {resp.status}")
                return await resp.text()
        except asyncio.TimeoutError:
            raise CollaboratorUnavailable(collaborator, "timed out")
        except (UnicodeDecodeError, LookupError) as e:
            raise CollaboratorUnavailable(collaborator, f"undecodable body: {e}")
        except ClientError as e:
            raise CollaboratorUnavailable(collaborator, str(e) or type(e).__name__)

    async def get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        collaborator: str = "http",
    ) -> Any:
        session = await self._ensure_session()
        custom_timeout = ClientTimeout(total=timeout or self.default_timeout)
        try:
            async with session.get(url, params=params, timeout=custom_timeout) as resp:
                if resp.status != 200:
                    raise CollaboratorUnavailable(collaborator, f"HTTP {resp.status}")
                return await resp.json(content_type=None)
        except asyncio.TimeoutError:
            raise CollaboratorUnavailable(collaborator, "timed out")
        except (ContentTypeError, ValueError, LookupError) as e:
            raise CollaboratorUnavailable(collaborator, f"invalid JSON: {e}")
        except ClientError as e:
            raise CollaboratorUnavailable(collaborator, str(e) or type(e).__name__)

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
