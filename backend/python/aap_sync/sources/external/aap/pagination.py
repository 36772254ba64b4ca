import logging
from typing import Any, Dict, List, Optional

from aap_sync.exceptions.aap_exceptions import PaginationLimitError
from aap_sync.sources.external.aap.aap import AAPDataSource
from aap_sync.utils.cancellation import CancellationToken


class Paginator:
    """Collects every page of a ``{results, next}`` list envelope.

    The first request goes to ``first_path`` with the optional query params,
    every following request to the server supplied ``next`` URL verbatim.
    Exactly one request is issued per page and results are concatenated
    in order without de-duplication.
    """

    def __init__(
        self,
        data_source: AAPDataSource,
        results_key: str = "results",
        next_key: str = "next",
        max_pages: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.data_source = data_source
        self.results_key = results_key
        self.next_key = next_key
        self.max_pages = max_pages
        self.logger = logger or logging.getLogger(__name__)

    async def collect(
        self,
        first_path: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        next_url: Optional[str] = None
        pages = 0

        while True:
            if cancellation:
                cancellation.raise_if_cancelled()
            if self.max_pages is not None and pages >= self.max_pages:
                raise PaginationLimitError(
                    f"Collection at {first_path} exceeded {self.max_pages} pages",
                    {"path": first_path, "max_pages": self.max_pages},
                )

            if next_url is None:
                response = await self.data_source.get(first_path, token, params=params)
            else:
                response = await self.data_source.get(first_path, token, url_override=next_url)
            pages += 1

            page = response.json() or {}
            results.extend(page.get(self.results_key) or [])
            next_url = page.get(self.next_key)
            if not next_url:
                break

        self.logger.debug(f"Collected {len(results)} items from {first_path} in {pages} page(s)")
        return results
