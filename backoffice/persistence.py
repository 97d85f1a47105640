"""Snapshot file persistence, one JSON file per entity kind."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Generic, Iterable, Mapping, Type, TypeVar

from .codec import decode_many, encode_many
from .errors import PersistenceFailure
from .models import RECORD_TYPES, EntityKind, Record

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

DATA_FILES: Dict[EntityKind, str] = {
    EntityKind.CLIENT: "clients-data.json",
    EntityKind.CONTACT: "contacts-data.json",
    EntityKind.LIST: "contact-lists-data.json",
    EntityKind.LIST_MEMBERSHIP: "contact-list-relations-data.json",
    EntityKind.CAMPAIGN: "campaigns-data.json",
    EntityKind.TEMPLATE: "email-templates-data.json",
    EntityKind.DOMAIN: "domains-data.json",
    EntityKind.EMAIL: "emails-data.json",
}


class JsonFileAdapter(Generic[R]):
    """Write the full collection to its file and read it back at startup.

    Every save rewrites the whole file; the snapshot is written to a sibling
    ``.tmp`` file first and renamed over the target so a crash mid-write
    leaves the previous snapshot intact.
    """

    def __init__(self, path: Path, model: Type[R], *, strict: bool = False) -> None:
        self.path = Path(path)
        self.model = model
        self.strict = strict

    @property
    def kind(self) -> str:
        return self.model.kind.value

    def save(self, records: Iterable[R]) -> None:
        """Overwrite the file with ``records``.

        I/O errors are logged; with ``strict`` they are also raised as
        :class:`PersistenceFailure`.
        """

        items = list(records)
        payload = json.dumps(encode_many(items), ensure_ascii=False, indent=2)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            logger.error(
                "failed to save records",
                extra={"kind": self.kind, "path": str(self.path), "error": str(exc)},
            )
            if self.strict:
                raise PersistenceFailure(self.path, exc) from exc
            return
        logger.info("saved records", extra={"kind": self.kind, "count": len(items)})

    def load(self) -> Dict[int, R]:
        """Return the persisted records, or an empty dict when there are none.

        A missing, unreadable or malformed file is treated as "no prior data"
        and never raises.
        """

        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
            records = decode_many(self.model, payload)
        except (OSError, ValueError) as exc:
            logger.warning(
                "ignoring unreadable data file",
                extra={"kind": self.kind, "path": str(self.path), "error": str(exc)},
            )
            return {}
        logger.info("loaded records", extra={"kind": self.kind, "count": len(records)})
        return records

    @staticmethod
    def next_id(records: Mapping[int, Any]) -> int:
        if not records:
            return 1
        return max(records) + 1


def adapters_for(base_dir: Path, *, strict: bool = False) -> Dict[EntityKind, JsonFileAdapter[Any]]:
    """Build one adapter per entity kind rooted at ``base_dir``."""
    base = Path(base_dir)
    return {
        kind: JsonFileAdapter(base / filename, RECORD_TYPES[kind], strict=strict)
        for kind, filename in DATA_FILES.items()
    }
