"""Shared fixtures and helpers for tests."""

import itertools
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from dataflow_definition.core.codec import dump_json, encode_text
from dataflow_definition.models import (
    MASHUP_PATH,
    PLATFORM_PATH,
    QUERY_METADATA_PATH,
    DataflowDefinition,
    DefinitionPart,
)
from dataflow_definition.store.memory import InMemoryDefinitionStore

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

DESTINATION_ATTRIBUTE = (
    '[DataDestinations = {[Definition = [Kind = "Reference", QueryName = "Customers_DataDestination", '
    'IsNewTarget = true], Settings = [Kind = "Automatic", TypeSettings = [Kind = "Table"]]]}]'
)

GEN2_DOCUMENT = (
    '[StagingDefinition = [Kind = "FastCopy"]]\r\n'
    "section Section1;\r\n"
    f"{DESTINATION_ATTRIBUTE}\r\n"
    "shared Customers = let\r\n"
    '  Source = Sql.Database("srv", "db"),\r\n'
    '  Result = Source{[Schema = "dbo", Item = "Customers"]}[Data]\r\n'
    "in\r\n"
    "  Result;\r\n"
    "shared Customers_DataDestination = let\r\n"
    "  Pattern = Lakehouse.Contents([HierarchicalNavigation = null]),\r\n"
    '  Navigation_1 = Pattern{[workspaceId = "ws"]}[Data]\r\n'
    "in\r\n"
    "  Navigation_1;\r\n"
)

SIMPLE_DOCUMENT = (
    "section Section1;\r\n"
    "shared Orders = let\r\n"
    '  Source = Sql.Database("srv", "db")\r\n'
    "in\r\n"
    "  Source;\r\n"
    "// helper used by the report\r\n"
    'shared #"Order Lines" = let Source = Orders in Source;\r\n'
)


@pytest.fixture
def gen2_document() -> str:
    return GEN2_DOCUMENT


@pytest.fixture
def simple_document() -> str:
    return SIMPLE_DOCUMENT


@pytest.fixture
def fixed_ids() -> Callable[[], str]:
    """Deterministic query id factory: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


def make_definition(
    mashup: str | None = None,
    metadata: dict[str, Any] | None = None,
    platform: dict[str, Any] | None = None,
    extra: list[DefinitionPart] | None = None,
) -> DataflowDefinition:
    parts: list[DefinitionPart] = []
    if metadata is not None:
        parts.append(DefinitionPart(path=QUERY_METADATA_PATH, payload=encode_text(dump_json(metadata))))
    if mashup is not None:
        parts.append(DefinitionPart(path=MASHUP_PATH, payload=encode_text(mashup)))
    if platform is not None:
        parts.append(DefinitionPart(path=PLATFORM_PATH, payload=encode_text(dump_json(platform))))
    parts.extend(extra or [])
    return DataflowDefinition(parts=parts)


@pytest.fixture
def sample_definition(simple_document: str) -> DataflowDefinition:
    metadata = {
        "formatVersion": "202502",
        "documentLocale": "en-US",
        "queriesMetadata": {
            "Orders": {"queryId": "orders-id", "queryName": "Orders", "loadEnabled": False},
            "Order Lines": {"queryId": "lines-id", "queryName": "Order Lines"},
        },
        "connections": [],
    }
    platform = {"metadata": {"type": "Dataflow", "displayName": "Sales"}, "config": {"version": "2.0"}}
    return make_definition(simple_document, metadata, platform)


@pytest.fixture
def in_memory_store() -> InMemoryDefinitionStore:
    return InMemoryDefinitionStore()


@pytest.fixture
def definition_factory() -> Callable[..., DataflowDefinition]:
    return make_definition


@pytest.fixture
def destination_attribute() -> str:
    return DESTINATION_ATTRIBUTE
