import asyncio
import json
import logging
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Dict, Optional
from urllib.parse import unquote

import httpx
from pydantic import ValidationError

from services.errors import ExternalAPIError, JoinError
from wolt.models import OrderDetails, Venue

logger = logging.getLogger(__name__)

RETRY_STATUSES = {429, 500, 502, 503, 504}

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.16; rv:84.0) Gecko/20100101 Firefox/84.0",
    "Content-Type": "application/json;charset=utf-8",
}


@dataclass(frozen=True)
class WoltAddr:
    base_addr: str = "https://wolt.com"
    api_base_addr: str = "https://restaurant-api.wolt.com"


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 5
    min_wait: float = 1
    max_wait: float = 30

    def wait_for_attempt(self, attempt: int) -> float:
        return min(self.max_wait, self.min_wait * (2 ** attempt))


class _BootstrapScriptParser(HTMLParser):
    """Collects the text of the element with id="bootstrap" """

    def __init__(self):
        super().__init__()
        self._inside = False
        self.data = []

    def handle_starttag(self, tag, attrs):
        if dict(attrs).get("id") == "bootstrap":
            self._inside = True

    def handle_endtag(self, tag):
        self._inside = False

    def handle_data(self, data):
        if self._inside:
            self.data.append(data)


def group_id_from_join_page(html: str) -> str:
    parser = _BootstrapScriptParser()
    parser.feed(html)
    if not parser.data:
        raise JoinError("find bootstrap script")

    try:
        bootstrap = json.loads(unquote("".join(parser.data).strip()))
        return bootstrap["groupOrder"]["order"]["confirmedState"]["id"]
    except (ValueError, KeyError, TypeError) as e:
        raise JoinError(f"find group id from bootstrap JSON: {e}") from e


class WoltGroup:
    """Client for one Wolt group order, joined as a guest"""

    def __init__(
        self,
        addrs: WoltAddr,
        retry: RetryConfig,
        pretty_id: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.addrs = addrs
        self.retry = retry
        self.pretty_id = pretty_id
        self.id: Optional[str] = None
        self._client = client or httpx.AsyncClient(
            headers={**DEFAULT_HEADERS, "Origin": addrs.base_addr},
            follow_redirects=True,
            timeout=30,
        )

    async def aclose(self):
        await self._client.aclose()

    def _base_url(self, path: str) -> str:
        return self.addrs.base_addr.rstrip("/") + path

    def _api_url(self, path: str) -> str:
        return self.addrs.api_base_addr.rstrip("/") + path

    def _participant_url(self) -> str:
        return self._api_url(f"/v1/group_order/guest/{self.id}/participants/me")

    async def _request(self, method: str, url: str, json_body: Optional[Dict] = None,
                       headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        last_error = None
        for attempt in range(self.retry.max_retries + 1):
            if attempt:
                logger.warning(f"Retrying request for {url} (attempt {attempt})")
                await asyncio.sleep(self.retry.wait_for_attempt(attempt - 1))
            try:
                resp = await self._client.request(method, url, json=json_body, headers=headers)
            except httpx.TransportError as e:
                last_error = f"sending request: {e}"
                continue

            if resp.status_code in RETRY_STATUSES:
                last_error = f"got non 200 response: {resp.status_code}"
                continue
            if resp.status_code != 200:
                raise ExternalAPIError(f"{method} {url}: got non 200 response: {resp.status_code}")
            return resp

        raise ExternalAPIError(f"{method} {url}: giving up after {self.retry.max_retries} retries: {last_error}")

    async def join(self):
        try:
            resp = await self._request("GET", self._base_url(f"/en/group-order/{self.pretty_id}/join"))
            self.id = group_id_from_join_page(resp.text)
            await self._request(
                "POST",
                self._api_url(f"/v1/group_order/guest/join/{self.id}"),
                json_body={"first_name": "Wolt Bot"},
                headers={"Referer": self.addrs.base_addr},
            )
        except JoinError:
            raise
        except ExternalAPIError as e:
            raise JoinError(f"join group {self.pretty_id}: {e}") from e
        logger.info(f"Joined Wolt group {self.pretty_id} (real ID {self.id})")

    async def mark_as_ready(self):
        await self._request("PATCH", self._participant_url(), json_body={"status": "ready"})

    async def details(self) -> OrderDetails:
        resp = await self._request("PATCH", self._participant_url(), json_body={"subscribed": False})
        try:
            return OrderDetails.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ExternalAPIError(f"parse group details: {e}") from e

    async def venue_details(self, details: Optional[OrderDetails] = None) -> Venue:
        if details is None:
            details = await self.details()

        resp = await self._request("GET", self._api_url(f"/v3/venues/{details.venue_id}"))
        try:
            results = resp.json().get("results") or []
            if not results:
                raise ExternalAPIError(f"no venue found for ID {details.venue_id}")
            return Venue.model_validate(results[0])
        except (ValueError, ValidationError) as e:
            raise ExternalAPIError(f"parse venue details: {e}") from e
