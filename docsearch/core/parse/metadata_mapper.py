import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from docsearch.models.document import DocumentMetadata

logger = logging.getLogger(__name__)

# Extractor-native timestamp layout
NATIVE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Ordered fallback keys per logical field
FIELD_KEYS: Dict[str, List[str]] = {
    "author": ["dc:creator", "Author"],
    "title": ["dc:title"],
    "content_type": ["Content-Type"],
    "creation_date": ["dcterms:created"],
    "last_modified": ["dcterms:modified"],
    "creator": ["producer", "Application-Name"],
    "keywords": ["Keywords", "meta:keyword"],
    "subject": ["dc:subject"],
    "page_count": ["xmpTPg:NPages", "Page-Count"],
}

DATE_FIELDS = {"creation_date", "last_modified"}
INT_FIELDS = {"page_count"}


class MetadataMapper:
    """
    Maps an extractor's raw metadata mapping onto DocumentMetadata.
    Best-effort: a missing key, a wrong type or an unparseable value leaves
    the field unset and never fails the ingestion.
    """

    def map(self, raw: Optional[Mapping[str, Any]]) -> DocumentMetadata:
        fields = {}
        if not raw:
            return DocumentMetadata()

        for field_name, keys in FIELD_KEYS.items():
            value = self._resolve(raw, keys)
            if value is None:
                continue
            if field_name in DATE_FIELDS:
                value = parse_native_date(value)
            elif field_name in INT_FIELDS:
                value = self._parse_int(value)
            if value is not None:
                fields[field_name] = value

        metadata = DocumentMetadata(**fields)
        logger.debug(
            f"Metadata mapped - author: {metadata.author}, title: {metadata.title}, "
            f"type: {metadata.content_type}, pages: {metadata.page_count}"
        )
        return metadata

    def _resolve(self, raw: Mapping[str, Any], keys: List[str]) -> Optional[str]:
        for key in keys:
            value = raw.get(key)
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    def _parse_int(self, value: str) -> Optional[int]:
        try:
            return int(value)
        except ValueError:
            logger.debug(f"Could not parse page count: {value}")
            return None


def parse_native_date(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, NATIVE_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Could not parse date: {value}")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
