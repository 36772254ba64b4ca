"""
Fixtures for the AAP unit tests.

The remote platform is replaced by :class:`FakeAAP`, an ``httpx.MockTransport``
handler serving canned responses per (method, path, query) and recording
every request it receives.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

import httpx  # type: ignore
import pytest  # type: ignore

from aap_sync.config.aap_config import AapConfig, AnsibleConfig
from aap_sync.connectors.core.base.connection.in_memory_connection import (
    InMemoryEntityProviderConnection,
)
from aap_sync.connectors.sources.aap.directory import AAPDirectoryService
from aap_sync.sources.client.aap.aap import AAPClient, AAPTokenConfig
from aap_sync.sources.external.aap.aap import AAPDataSource
from aap_sync.sources.external.aap.pagination import Paginator

BASE_URL = "https://aap.example.com"
TOKEN = "test-token"


@dataclass
class Route:
    method: str
    path: str
    query: Optional[Dict[str, Union[str, List[str]]]] = None
    status: int = 200
    body: Any = None
    text: Optional[str] = None
    error: Optional[Callable[[httpx.Request], Exception]] = None
    times: Optional[int] = None
    delay: float = 0.0
    served: int = 0

    def matches(self, request: httpx.Request) -> bool:
        if request.method != self.method or request.url.path != self.path:
            return False
        for key, expected in (self.query or {}).items():
            values = request.url.params.get_list(key)
            if isinstance(expected, list):
                if values != [str(value) for value in expected]:
                    return False
            elif values != [str(expected)]:
                return False
        return True

    @property
    def exhausted(self) -> bool:
        return self.times is not None and self.served >= self.times


@dataclass
class FakeAAP:
    """In-process stand-in for an AAP instance"""
    base_url: str = BASE_URL
    routes: List[Route] = field(default_factory=list)
    requests: List[httpx.Request] = field(default_factory=list)
    # ("start" | "end", path) in the order the fake served them
    timeline: List[Tuple[str, str]] = field(default_factory=list)

    def add(
        self,
        method: str,
        path: str,
        body: Any = None,
        status: int = 200,
        query: Optional[Dict[str, Any]] = None,
        text: Optional[str] = None,
        error: Optional[Callable[[httpx.Request], Exception]] = None,
        times: Optional[int] = None,
        delay: float = 0.0,
    ) -> Route:
        route = Route(
            method=method,
            path=urlsplit(path).path if path.startswith("http") else "/" + path.lstrip("/"),
            query=query,
            status=status,
            body=body,
            text=text,
            error=error,
            times=times,
            delay=delay,
        )
        self.routes.append(route)
        return route

    def replace(self, method: str, path: str, *args, **kwargs) -> Route:
        """Drop the routes registered for method and path, then add a new one"""
        route = self.add(method, path, *args, **kwargs)
        self.routes = [r for r in self.routes if r is route or (r.method, r.path) != (route.method, route.path)]
        return route

    def page(self, path: str, results: List[Dict[str, Any]], next_url: Optional[str] = None, **kwargs) -> Route:
        return self.add("GET", path, {"count": len(results), "next": next_url, "results": results}, **kwargs)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Most specific query filter first
        candidates = sorted(
            (route for route in self.routes if route.matches(request)),
            key=lambda route: -len(route.query or {}),
        )
        if not candidates:
            return httpx.Response(404, json={"detail": f"No route for {request.method} {request.url}"})

        route = next((route for route in candidates if not route.exhausted), candidates[-1])
        route.served += 1
        self.timeline.append(("start", request.url.path))
        if route.delay:
            await asyncio.sleep(route.delay)
        self.timeline.append(("end", request.url.path))
        if route.error:
            raise route.error(request)
        if route.text is not None:
            return httpx.Response(route.status, text=route.text)
        if route.body is None:
            return httpx.Response(route.status)
        return httpx.Response(route.status, json=route.body)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        path = "/" + path.lstrip("/")
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def json_body(self, request: httpx.Request) -> Any:
        return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests.aap")


@pytest.fixture
def fake_aap() -> FakeAAP:
    return FakeAAP()


@pytest.fixture
def aap_client(fake_aap: FakeAAP) -> AAPClient:
    return AAPClient.build_with_config(
        AAPTokenConfig(base_url=BASE_URL, token=TOKEN),
        transport=httpx.MockTransport(fake_aap.handler),
    )


@pytest.fixture
def data_source(aap_client: AAPClient, logger: logging.Logger) -> AAPDataSource:
    return AAPDataSource(aap_client, logger)


@pytest.fixture
def paginator(data_source: AAPDataSource, logger: logging.Logger) -> Paginator:
    return Paginator(data_source, logger=logger)


@pytest.fixture
def ansible_config() -> AnsibleConfig:
    return AnsibleConfig(
        base_url=BASE_URL,
        token=TOKEN,
        check_ssl=False,
        github_token="gh-secret",
        gitlab_token="gl-secret",
    )


@pytest.fixture
def provider_config() -> AapConfig:
    return AapConfig(
        id="development",
        base_url=BASE_URL,
        token=TOKEN,
        organizations=["default", "engineering"],
    )


@pytest.fixture
def directory_service(data_source: AAPDataSource, paginator: Paginator, logger: logging.Logger) -> AAPDirectoryService:
    return AAPDirectoryService(data_source, paginator, logger)


@pytest.fixture
def connection(logger: logging.Logger) -> InMemoryEntityProviderConnection:
    return InMemoryEntityProviderConnection(logger)
