from typing import Any

from pydantic import BaseModel, ConfigDict, Field

QUERY_METADATA_PATH = "queryMetadata.json"
MASHUP_PATH = "mashup.pq"
PLATFORM_PATH = ".platform"

INLINE_BASE64 = "InlineBase64"


class DefinitionPart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    payload: str = ""
    payload_type: str = Field(default=INLINE_BASE64, alias="payloadType")


class DataflowDefinition(BaseModel):
    parts: list[DefinitionPart] = Field(default_factory=list)

    def find_part(self, path: str) -> DefinitionPart | None:
        """Return the part whose path matches ``path`` case-insensitively."""
        wanted = path.lower()
        for part in self.parts:
            if part.path.lower() == wanted:
                return part
        return None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class DecodedDefinition(BaseModel):
    query_metadata: dict[str, Any] | None = None
    mashup_query: str | None = None
    platform_metadata: dict[str, Any] | None = None
    raw_parts: list[DefinitionPart] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)


class ParsedQuery(BaseModel):
    name: str
    code: str
    attribute: str = ""


class QueryMetadataEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query_id: str = Field(alias="queryId")
    query_name: str = Field(alias="queryName")
    load_enabled: bool = Field(default=False, alias="loadEnabled")
    is_hidden: bool | None = Field(default=None, alias="isHidden")


class ConnectionDetails(BaseModel):
    kind: str
    path: str


class ConnectionBinding(BaseModel):
    connection_id: str
    details: ConnectionDetails
    cluster_id: str | None = None


class MetadataPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    load_enabled: bool | None = Field(default=None, alias="loadEnabled")
    is_hidden: bool | None = Field(default=None, alias="isHidden")
    destination_settings: dict[str, Any] | None = Field(default=None, alias="destinationSettings")


class DocumentValidationResult(BaseModel):
    is_valid: bool
    is_gen2: bool = False
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class DocumentSaveResult(BaseModel):
    stage: str
    validation: DocumentValidationResult
    queries: list[ParsedQuery] = Field(default_factory=list)
    saved: bool = False
