import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DOCUMENT_LOCALE = "en-US"


@dataclass(frozen=True)
class MetadataDefaults:
    """Values written into query metadata when the bundle does not carry them.

    ``document_locale`` is read by downstream consumers for date and number
    parsing. Queries are never auto-loaded to a default destination, so
    ``load_enabled`` stays False unless a caller deliberately overrides it.
    """

    document_locale: str = DEFAULT_DOCUMENT_LOCALE
    load_enabled: bool = False


def get_metadata_defaults() -> MetadataDefaults:
    locale = os.getenv("DATAFLOW_DOCUMENT_LOCALE", DEFAULT_DOCUMENT_LOCALE).strip()
    return MetadataDefaults(document_locale=locale or DEFAULT_DOCUMENT_LOCALE)


def get_store_dir() -> Path:
    return Path(os.getenv("DATAFLOW_STORE_DIR", ".dataflows"))


def get_log_level() -> str:
    return os.getenv("DATAFLOW_LOG_LEVEL", "WARNING").upper()
