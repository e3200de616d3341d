"""Shared HTTP session for probes."""

import asyncio
import logging
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)


class ProbeSessionManager:
    """Owns the aiohttp session reused by every HTTP probe."""

    def __init__(self, service_name: str, user_agent: Optional[str] = None):
        self.service_name = service_name
        self.user_agent = user_agent or f"{service_name}/1.0"
        self.session: Optional[aiohttp.ClientSession] = None

    def get_session(self) -> aiohttp.ClientSession:
        """Return the open session, creating one on first use."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={"User-Agent": self.user_agent},
                connector=aiohttp.TCPConnector(limit=100, limit_per_host=10, ttl_dns_cache=300),
            )
            logger.debug("Created HTTP probe session")
        return self.session

    async def close(self) -> None:
        session, self.session = self.session, None
        if session is None or session.closed:
            return
        try:
            await asyncio.wait_for(session.close(), timeout=5.0)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError):  # policy_guard: allow-silent-handler
            logger.warning("Error closing HTTP probe session")
        else:
            logger.info("HTTP probe session closed")
