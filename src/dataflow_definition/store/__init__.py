from dataflow_definition.store.files import FileDefinitionStore
from dataflow_definition.store.memory import InMemoryDefinitionStore, StaticClusterResolver

__all__ = [
    "FileDefinitionStore",
    "InMemoryDefinitionStore",
    "StaticClusterResolver",
]
