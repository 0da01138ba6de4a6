import json
import logging
from pathlib import Path

from dataflow_definition.models import DataflowDefinition

logger = logging.getLogger(__name__)


class FileDefinitionStore:
    """Keep definitions on disk in the service's wire shape.

    Layout: ``<root>/<workspace_id>/<dataflow_id>.json`` holding
    ``{"parts": [{"path", "payload", "payloadType"}]}``. A top-level
    ``{"definition": {...}}`` envelope, as returned by the remote API, is
    also accepted on read.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def path_for(self, workspace_id: str, dataflow_id: str) -> Path:
        for value in (workspace_id, dataflow_id):
            if not value or "/" in value or "\\" in value or value in (".", ".."):
                raise ValueError(f"Invalid identifier: {value!r}")
        return self._root / workspace_id / f"{dataflow_id}.json"

    async def fetch_definition(self, workspace_id: str, dataflow_id: str) -> DataflowDefinition:
        path = self.path_for(workspace_id, dataflow_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise FileNotFoundError(f"Dataflow definition not found: {path}") from None

        if isinstance(data, dict) and "definition" in data and "parts" not in data:
            data = data["definition"]
        return DataflowDefinition.model_validate(data)

    async def persist_definition(self, workspace_id: str, dataflow_id: str, definition: DataflowDefinition) -> None:
        path = self.path_for(workspace_id, dataflow_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(definition.to_wire(), indent=2) + "\n", encoding="utf-8")
        logger.info("Persisted definition to %s", path)
