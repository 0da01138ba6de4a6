from dataflow_definition.models import DataflowDefinition


class InMemoryDefinitionStore:
    def __init__(self) -> None:
        self.definitions: dict[tuple[str, str], DataflowDefinition] = {}
        self.persist_count = 0

    def put(self, workspace_id: str, dataflow_id: str, definition: DataflowDefinition) -> None:
        self.definitions[(workspace_id, dataflow_id)] = definition.model_copy(deep=True)

    async def fetch_definition(self, workspace_id: str, dataflow_id: str) -> DataflowDefinition:
        definition = self.definitions.get((workspace_id, dataflow_id))
        if definition is None:
            raise FileNotFoundError(f"Dataflow {dataflow_id} not found in workspace {workspace_id}")
        return definition.model_copy(deep=True)

    async def persist_definition(self, workspace_id: str, dataflow_id: str, definition: DataflowDefinition) -> None:
        self.put(workspace_id, dataflow_id, definition)
        self.persist_count += 1


class StaticClusterResolver:
    """Resolve cluster ids from a fixed mapping of connection id to cluster id."""

    def __init__(self, clusters: dict[str, str] | None = None) -> None:
        self.clusters = dict(clusters or {})

    async def resolve_cluster_id(self, connection_id: str) -> str | None:
        return self.clusters.get(connection_id)
