"""Folding stats API client — async HTTP wrapper.

Provides get_user_stats() and lookup_user() on top of the team stats API.
Each call is a single best-effort GET: any failure (transport, status,
malformed body, or ``success: false``) produces the same "api is down"
reply. All tests mock the HTTP layer — never call a real stats API.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar
from urllib.parse import urljoin

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .formatting import format_matches, format_user_stats

if TYPE_CHECKING:
    from .config import FoldingConfig

DISTRO_PATH = "/v1/GetDistro/Next"
MEMBERS_PATH = "/v1/GetMembers"

API_UNAVAILABLE = "The api is down :( try again later"
ADDRESS_NOT_FOUND = (
    "We were unable to find your bitcoin address. Ensure the address is correct and try again."
)
NO_MATCHES = (
    "No matches found. Ensure you are searching the start or ending of your username and try again."
)


# ══════════════════════════════════════════════════════════
#  Response envelopes
# ══════════════════════════════════════════════════════════

class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DistroUser(_ApiModel):
    bitcoin_address: str = Field(alias="bitcoinAddress")
    points_gained: int | float = Field(default=0, alias="pointsGained")
    work_units_gained: int | float = Field(default=0, alias="workUnitsGained")
    amount: int | float = 0


class DistroResponse(_ApiModel):
    success: bool = False
    distro: list[DistroUser] = Field(default_factory=list)


class Member(_ApiModel):
    user_name: str = Field(alias="userName")


class MembersResponse(_ApiModel):
    success: bool = False
    members: list[Member] = Field(default_factory=list)


_Envelope = TypeVar("_Envelope", DistroResponse, MembersResponse)


def find_distro_user(response: DistroResponse, bitcoin_address: str) -> DistroUser | None:
    """First entry whose address matches exactly (case-sensitive)."""
    for user in response.distro:
        if user.bitcoin_address == bitcoin_address:
            return user
    return None


def match_members(members: list[Member], search: str) -> list[str]:
    """Names starting or ending with *search*, ignoring case.

    Duplicates are dropped, keeping first-seen order.
    """
    needle = search.casefold()
    seen: dict[str, None] = {}
    for member in members:
        name = member.user_name
        folded = name.casefold()
        if folded.startswith(needle) or folded.endswith(needle):
            seen.setdefault(name, None)
    return list(seen)


class FoldingApiClient:
    """Async client for the folding team stats API."""

    def __init__(self, config: FoldingConfig, logger: logging.Logger | None = None) -> None:
        self._config = config
        self._logger = logger or logging.getLogger("foldingbot.api")
        self._session: aiohttp.ClientSession | None = None
        self.failures: int = 0

    async def start(self) -> None:
        """Create the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession()

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def url_for(self, path: str) -> str:
        """Configured origin joined with an absolute API path."""
        return urljoin(self._config.api_uri, path)

    # ══════════════════════════════════════════════════════════
    #  Commands
    # ══════════════════════════════════════════════════════════

    async def get_user_stats(self, bitcoin_address: str) -> str:
        response = await self.fetch_distro()
        if response is None:
            return API_UNAVAILABLE

        user = find_distro_user(response, bitcoin_address)
        if user is None:
            return ADDRESS_NOT_FOUND
        return format_user_stats(user)

    async def lookup_user(self, search: str) -> str:
        response = await self.fetch_members()
        if response is None:
            return API_UNAVAILABLE

        names = match_members(response.members, search)
        if not names:
            return NO_MATCHES
        return format_matches(names)

    async def fetch_distro(self) -> DistroResponse | None:
        """Fetch the next distribution, or None when unavailable."""
        return await self._get_envelope(DISTRO_PATH, DistroResponse)

    async def fetch_members(self) -> MembersResponse | None:
        """Fetch the team member list, or None when unavailable."""
        return await self._get_envelope(MEMBERS_PATH, MembersResponse)

    # ══════════════════════════════════════════════════════════
    #  Internal Helpers
    # ══════════════════════════════════════════════════════════

    async def _get_envelope(self, path: str, model: type[_Envelope]) -> _Envelope | None:
        """GET *path* and parse the body as *model*.

        Returns None on any failure. A successful parse with ``success``
        false is a failure too.
        """
        if not self._session:
            await self.start()

        url = self.url_for(path)
        try:
            self._logger.info("Starting GET from URI: %s", url)
            async with self._session.get(url) as resp:
                body = await resp.text()
                self._logger.info("Finished GET from URI")
                if not 200 <= resp.status < 300:
                    self._logger.error(
                        "The response status code: %s responseContent: %s",
                        resp.status, body,
                    )
                    self.failures += 1
                    return None
            self._logger.debug("responseContent: %s", body)
            envelope = model.model_validate_json(body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._logger.error("Stats API request to %s failed: %s", url, e)
            self.failures += 1
            return None
        except (ValidationError, ValueError) as e:
            self._logger.error("Stats API response from %s could not be parsed: %s", url, e)
            self.failures += 1
            return None

        if not envelope.success:
            self._logger.warning("Stats API reported failure for %s", url)
            self.failures += 1
            return None
        return envelope
