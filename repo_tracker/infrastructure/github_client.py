import aiohttp
import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from repo_tracker.domain.exceptions import (
    GitHubRequestException,
    RateLimitExceededException,
    RepositoryNotFoundException,
)

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30, connect=10)
MAX_RETRIES = 3
RETRYABLE_STATUSES = {500, 502, 503, 504}
RATE_LIMIT_STATUSES = {403, 429}
# GitHub answers 409 on /commits for a repository with no commits
EMPTY_REPOSITORY_STATUS = 409

class GitHubRestClient:
    """
    Client for the two GitHub REST endpoints the tracker reads.
    Handles authentication, per-call timeouts and retries of transient failures.
    """

    def __init__(self, token: Optional[str] = None, timeout: Optional[aiohttp.ClientTimeout] = None):
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "repo-tracker",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.api_url = API_URL
        self.timeout = timeout or REQUEST_TIMEOUT

    @staticmethod
    def _rate_limit_reset(headers) -> Optional[str]:
        reset = headers.get("X-RateLimit-Reset")
        if not reset:
            return None
        try:
            return datetime.fromtimestamp(int(reset), tz=timezone.utc).isoformat()
        except (TypeError, ValueError):
            return None

    async def _get_json(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: Optional[Dict[str, str]] = None,
        allow_empty: bool = False,
    ) -> Any:
        """
        GETs ``path`` and returns the decoded JSON body.

        Returns None for a 409 when ``allow_empty`` is set. Retries 5xx answers,
        connection errors and timeouts; every other failure raises at once.
        """
        url = f"{self.api_url}{path}"

        for attempt in range(MAX_RETRIES):
            try:
                async with session.get(url, headers=self.headers, params=params, timeout=self.timeout) as response:
                    if response.status in RATE_LIMIT_STATUSES and (
                        response.status == 429 or response.headers.get("X-RateLimit-Remaining") == "0"
                    ):
                        raise RateLimitExceededException(reset_at=self._rate_limit_reset(response.headers))

                    if response.status == 404:
                        raise RepositoryNotFoundException(path)

                    if allow_empty and response.status == EMPTY_REPOSITORY_STATUS:
                        return None

                    if response.status in RETRYABLE_STATUSES:
                        sleep_time = (2 ** attempt) + random.uniform(0, 1)
                        logger.warning(
                            f"Server error ({response.status}) for {path}, "
                            f"retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})..."
                        )
                        await asyncio.sleep(sleep_time)
                        continue

                    response.raise_for_status()
                    return await response.json()

            except aiohttp.ClientResponseError as e:
                raise GitHubRequestException(f"GitHub returned {e.status} for {path}: {e.message}") from e

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                sleep_time = (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    f"Request for {path} failed (attempt {attempt + 1}/{MAX_RETRIES}): {e!r}. "
                    f"Retrying in {sleep_time:.1f}s..."
                )
                await asyncio.sleep(sleep_time)

        raise GitHubRequestException(f"Failed to fetch {path} after {MAX_RETRIES} attempts.")

    async def get_repository(self, session: aiohttp.ClientSession, full_name: str) -> Dict[str, Any]:
        """Fetches the repository attributes (stars, issues, license, dates...)."""
        data = await self._get_json(session, f"/repos/{full_name}")
        if not isinstance(data, dict):
            raise GitHubRequestException(f"Unexpected repository payload for {full_name}.")
        return data

    async def get_latest_commit(self, session: aiohttp.ClientSession, full_name: str) -> Optional[Dict[str, Any]]:
        """Fetches the most recent commit on the default branch, or None if there is none."""
        data = await self._get_json(
            session, f"/repos/{full_name}/commits", params={"per_page": "1"}, allow_empty=True
        )
        if not data or not isinstance(data, list):
            return None
        return data[0]
