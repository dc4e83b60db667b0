"""Shared fixtures: in-memory stand-ins for Document Intelligence and Cosmos DB."""

from __future__ import annotations

import copy
import logging
import sys

import pytest

from app.extraction.analysis_client import AnalysisError
from app.extraction.schemas import AnalysisResult
from app.storage.cosmos_store import CosmosClientProvider, FormStore

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
    force=True,
)


class FakeContainer:
    """Dict-backed container: upsert replaces by id, every write is journaled."""

    def __init__(self, fail_on_calls: set[int] | None = None):
        self.items: dict[str, dict] = {}
        self.writes: list[dict] = []
        self.fail_on_calls = fail_on_calls or set()

    async def upsert_item(self, body: dict) -> dict:
        call_no = len(self.writes) + 1
        self.writes.append(copy.deepcopy(body))
        if call_no in self.fail_on_calls:
            raise RuntimeError(f"cosmos unavailable (call {call_no})")
        self.items[body["id"]] = copy.deepcopy(body)
        return body


class FakeCosmosClient:
    def __init__(self, container: FakeContainer):
        self.container = container
        self.database_name = None
        self.container_name = None
        self.closed = False

    def get_database_client(self, name: str):
        self.database_name = name
        return self

    def get_container_client(self, name: str):
        self.container_name = name
        return self.container

    async def close(self) -> None:
        self.closed = True


class FakeAnalyzer:
    """Scripted analyzer; page outcomes may be AnalysisResult or an exception."""

    def __init__(
        self,
        page_count: int | Exception = 1,
        general: AnalysisResult | Exception | None = None,
        custom: dict[int, AnalysisResult | Exception] | None = None,
    ):
        self.page_count = page_count
        self.general = general if general is not None else AnalysisResult()
        self.custom = custom or {}
        self.calls: list[tuple] = []

    async def analyze_layout(self, url: str) -> int:
        self.calls.append(("layout", url))
        if isinstance(self.page_count, Exception):
            raise self.page_count
        return self.page_count

    async def analyze_general(self, url: str) -> AnalysisResult:
        self.calls.append(("general", url))
        if isinstance(self.general, Exception):
            raise self.general
        return self.general

    async def analyze_custom(self, url: str, model_id: str, page_number: int) -> AnalysisResult:
        self.calls.append(("custom", url, model_id, page_number))
        outcome = self.custom.get(page_number, AnalysisResult())
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_container() -> FakeContainer:
    return FakeContainer()


@pytest.fixture
def fake_cosmos_client(fake_container: FakeContainer) -> FakeCosmosClient:
    return FakeCosmosClient(fake_container)


@pytest.fixture
def form_store(fake_cosmos_client: FakeCosmosClient) -> FormStore:
    provider = CosmosClientProvider("AccountEndpoint=https://fake/;AccountKey=x;", factory=lambda cs: fake_cosmos_client)
    return FormStore(provider)


@pytest.fixture
def analysis_failure() -> AnalysisError:
    return AnalysisError("analysis_error model=test: service unavailable")
