from typing import Protocol

from dataflow_definition.models import DataflowDefinition


class DefinitionStore(Protocol):
    async def fetch_definition(self, workspace_id: str, dataflow_id: str) -> DataflowDefinition: ...

    async def persist_definition(self, workspace_id: str, dataflow_id: str, definition: DataflowDefinition) -> None: ...


class ClusterResolver(Protocol):
    async def resolve_cluster_id(self, connection_id: str) -> str | None: ...
