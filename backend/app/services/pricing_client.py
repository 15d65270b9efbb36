"""
Pricing collaborator.

Sends extracted slice metadata to an external pricing service and returns
the computed price. Any failure is surfaced as a downstream failure so the
caller never returns a partially successful job.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.middleware.error_handler import DownstreamFailureError
from app.models import GcodeMetadata

logger = logging.getLogger(__name__)


class PricingClient(ABC):
    """Abstract pricing collaborator."""

    @abstractmethod
    async def quote(self, session_id: str, metadata: GcodeMetadata) -> Optional[float]:
        """
        Price a sliced job.

        Args:
            session_id: Upload session identifier
            metadata: Times and filament usage extracted from the output

        Returns:
            float | None: Computed price, or None if the collaborator returned none

        Raises:
            DownstreamFailureError: If the collaborator cannot be reached or replies badly
        """
        pass


class HttpPricingClient(PricingClient):
    """Pricing collaborator reached over HTTP."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def quote(self, session_id: str, metadata: GcodeMetadata) -> Optional[float]:
        payload = {"id": session_id, **metadata.model_dump(exclude_none=True)}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=self._headers())
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[PRICING] {self.url} returned {e.response.status_code} for {session_id}")
            raise DownstreamFailureError(
                "Pricing service rejected the job",
                details={"status_code": e.response.status_code},
            )
        except httpx.HTTPError as e:
            logger.error(f"[PRICING] Request to {self.url} failed for {session_id}: {e}")
            raise DownstreamFailureError("Pricing service unavailable", details={"reason": str(e)})
        except ValueError:
            logger.error(f"[PRICING] Non-JSON reply from {self.url} for {session_id}")
            raise DownstreamFailureError("Pricing service returned an invalid response")

        if not isinstance(body, dict):
            raise DownstreamFailureError("Pricing service returned an invalid response")

        price = body.get("price")
        if price is None:
            return None
        try:
            return float(price)
        except (TypeError, ValueError):
            raise DownstreamFailureError(
                "Pricing service returned an invalid price",
                details={"price": price},
            )
