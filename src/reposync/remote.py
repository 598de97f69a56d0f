"""
Remote repository source.

Fetches the complete repository listing of a GitHub team or organization,
following pagination until the API signals that no pages remain.
"""

import logging
from typing import Any

import httpx

from .constants import APP_NAME, DEFAULT_PER_PAGE, GITHUB_ACCEPT, USER_AGENT
from .errors import RemoteFetchError
from .models import RepositoryDescriptor

logger = logging.getLogger(APP_NAME)


def parse_repositories(payload: Any, url_field: str = "clone_url") -> list[RepositoryDescriptor]:
    """
    Convert one page of the GitHub listing payload into descriptors.

    Args:
        payload: Decoded JSON body of a listing page
        url_field: Repository field used as the clone URL

    Returns:
        Descriptors in listing order

    Raises:
        RemoteFetchError: If the payload is not a list of repository objects
    """
    if not isinstance(payload, list):
        raise RemoteFetchError(
            f"Unexpected listing payload: expected a list, got {type(payload).__name__}"
        )

    repos = []
    for item in payload:
        if not isinstance(item, dict):
            raise RemoteFetchError("Unexpected listing entry: expected an object")
        name = item.get("name")
        clone_url = item.get(url_field)
        if not isinstance(name, str) or not name or not isinstance(clone_url, str):
            raise RemoteFetchError(
                f"Listing entry is missing 'name' or '{url_field}': {item.get('name')!r}"
            )
        repos.append(
            RepositoryDescriptor(
                name=name,
                clone_url=clone_url,
                archived=bool(item.get("archived", False)),
            )
        )
    return repos


class RemoteRepositorySource:
    """
    Paginated reader for a team repository listing endpoint.

    Pages are requested one after another so the resulting order is
    deterministic. Pagination ends on an empty page, or when the response
    carries a Link header without a rel="next" entry, or on a page that only
    repeats names already seen. A short page on its own does not end
    pagination.
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        per_page: int = DEFAULT_PER_PAGE,
        timeout: float = 30.0,
        url_field: str = "clone_url",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.token = token
        self.per_page = per_page
        self.timeout = timeout
        self.url_field = url_field
        self._transport = transport

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": GITHUB_ACCEPT, "User-Agent": USER_AGENT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch_all(self) -> list[RepositoryDescriptor]:
        """
        Fetch every page of the listing.

        Returns:
            All descriptors, deduplicated by name (first occurrence wins)

        Raises:
            RemoteFetchError: On authentication failure, network error, or an
                unparsable page. No partial listing is returned.
        """
        repos: list[RepositoryDescriptor] = []
        seen: set[str] = set()
        page = 1

        async with httpx.AsyncClient(
            headers=self.headers, timeout=self.timeout, transport=self._transport
        ) as client:
            while True:
                page_repos, has_next = await self.fetch_page(client, page)
                if not page_repos:
                    break

                added = 0
                for repo in page_repos:
                    if repo.name in seen:
                        logger.debug(f"Duplicate repository in listing: {repo.name}")
                        continue
                    seen.add(repo.name)
                    repos.append(repo)
                    added += 1

                if not added:
                    # Endpoints that ignore `page` repeat the same page forever.
                    logger.warning(
                        f"Page {page} of {self.url} repeated earlier entries only; "
                        "stopping pagination."
                    )
                    break
                if not has_next:
                    break
                page += 1

        logger.info(f"Fetched {len(repos)} repositories from {self.url}")
        return repos

    async def fetch_page(
        self, client: httpx.AsyncClient, page: int
    ) -> tuple[list[RepositoryDescriptor], bool]:
        """
        Fetch a single page.

        Args:
            client: Open HTTP client
            page: 1-based page number

        Returns:
            (descriptors, has_next). has_next is False only when the response
            carries a Link header without a next relation.
        """
        try:
            response = await client.get(
                self.url, params={"per_page": self.per_page, "page": page}
            )
        except httpx.HTTPError as e:
            raise RemoteFetchError(f"Repository listing unreachable: {e}") from e

        if response.status_code == 401:
            raise RemoteFetchError(
                "Authentication rejected by GitHub (check the token)", status_code=401
            )
        if response.status_code == 403:
            raise RemoteFetchError(
                "Access forbidden or rate limit exceeded", status_code=403
            )
        if response.status_code == 404:
            raise RemoteFetchError(
                f"Repository listing not found: {self.url}", status_code=404
            )
        if response.status_code != 200:
            raise RemoteFetchError(
                f"Repository listing returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteFetchError(f"Page {page} is not valid JSON: {e}") from e

        repos = parse_repositories(payload, self.url_field)
        has_next = "link" not in response.headers or "next" in response.links
        logger.debug(f"Page {page}: {len(repos)} repositories (next={has_next})")
        return repos, has_next
