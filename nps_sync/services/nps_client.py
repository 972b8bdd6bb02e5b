"""
Remote data source for NPS Sync.

This module provides the data source contract and its aiohttp client for
the 3C Plus ``/nps`` endpoint.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp

from nps_sync.core.config import settings
from nps_sync.core.errors import MalformedDataError, TransientFetchError
from nps_sync.core.logging import logger
from nps_sync.utils.helpers import format_date


class FeedbackSource(ABC):
    """
    Source of raw feedback rows.
    """

    @abstractmethod
    async def fetch_feedback(
        self,
        start_date: datetime,
        end_date: datetime,
        per_page: int = settings.PAGE_SIZE,
        page: int = 1,
    ) -> List[Dict[str, Any]]:
        """
        Fetch the raw rows created between two dates.

        Args:
            start_date: First day of the window.
            end_date: Last day of the window.
            per_page: Page size.
            page: Page number, starting at 1.

        Returns:
            Raw rows, not yet normalized.

        Raises:
            TransientFetchError: On network failure or non-2xx status.
            MalformedDataError: If the payload is not a list of rows.
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass


class NpsApiClient(FeedbackSource):
    """
    aiohttp client for the NPS endpoint.

    Credentials come from the outside: pass a token, or leave it empty when
    the session already carries authentication.
    """

    def __init__(
        self,
        base_url: str = settings.API_BASE_URL,
        token: str = settings.API_TOKEN,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: int = settings.REQUEST_TIMEOUT,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, without trailing slash.
            token: Bearer token, optional.
            session: Optional aiohttp session to use.
            request_timeout: Total request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.request_timeout = request_timeout
        self.request_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            self.request_headers["Authorization"] = f"Bearer {token}"

    async def ensure_session(self):
        """Ensure an aiohttp session exists."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def fetch_feedback(
        self,
        start_date: datetime,
        end_date: datetime,
        per_page: int = settings.PAGE_SIZE,
        page: int = 1,
    ) -> List[Dict[str, Any]]:
        await self.ensure_session()

        url = f"{self.base_url}/nps"
        params = {
            "start_date": format_date(start_date),
            "end_date": format_date(end_date),
            "per_page": str(per_page),
            "page": str(page),
        }

        try:
            async with self.session.get(
                url,
                params=params,
                headers=self.request_headers,
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            ) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    logger.warning(f"NPS request failed: {url}, status: {response.status}")
                    raise TransientFetchError(
                        f"NPS request returned status {response.status}",
                        status=response.status,
                        context={"params": params, "body": body[:500]},
                    )

                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedDataError(f"NPS response is not JSON: {e}") from e

        except asyncio.TimeoutError as e:
            raise TransientFetchError(f"NPS request timed out after {self.request_timeout}s") from e
        except aiohttp.ClientError as e:
            raise TransientFetchError(f"NPS request failed: {e}") from e

        rows = self._extract_rows(payload)
        logger.info(
            f"Fetched {len(rows)} rows for {params['start_date']}..{params['end_date']} (page {page})"
        )
        return rows

    @staticmethod
    def _extract_rows(payload: Any) -> List[Dict[str, Any]]:
        """
        Pull the row list out of a response body.

        The endpoint answers with either a bare list or an object holding
        the list under ``data``.
        """
        if isinstance(payload, list):
            return payload

        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            pagination = (payload.get("meta") or {}).get("pagination") or {}
            total_pages = pagination.get("total_pages")
            if isinstance(total_pages, int) and total_pages > 1:
                logger.warning(
                    f"NPS response spans {total_pages} pages; only the requested page was read"
                )
            return payload["data"]

        raise MalformedDataError(f"Unexpected NPS payload: {type(payload).__name__}")
