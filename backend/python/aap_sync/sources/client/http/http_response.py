from typing import Any

import httpx  # type: ignore


class HTTPResponse:
    """Thin wrapper over httpx.Response exposing the accessors the data sources use"""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response

    @property
    def status(self) -> int:
        return self.response.status_code

    @property
    def is_success(self) -> bool:
        return self.response.is_success

    @property
    def url(self) -> str:
        return str(self.response.url)

    @property
    def reason(self) -> str:
        return self.response.reason_phrase

    def json(self) -> Any:
        return self.response.json()

    def text(self) -> str:
        return self.response.text
