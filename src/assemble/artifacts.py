from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from contracts.documents import AssembledDocument, DocumentFailure
from staging.data_access import write_text_atomic
from staging.layout import ASSEMBLE_INDEX_NAME
from staging.manifest_store import format_timestamp


def build_assemble_index(
    *,
    staging_root: Path,
    input_root: Path,
    documents: list[AssembledDocument],
    failures: list[tuple[str, DocumentFailure]],
    created_at: datetime,
) -> dict[str, Any]:
    return {
        "createdAt": format_timestamp(created_at),
        "inputDir": str(input_root),
        "stagingDir": str(staging_root),
        "documents": [d.to_index_entry() for d in documents],
        "failed": [{"name": name, "docKey": f.doc_key, "error": f.message} for name, f in failures],
    }


def write_assemble_index(
    *,
    staging_root: Path,
    input_root: Path,
    documents: list[AssembledDocument],
    failures: list[tuple[str, DocumentFailure]],
    created_at: datetime,
) -> Path:
    payload = build_assemble_index(
        staging_root=staging_root,
        input_root=input_root,
        documents=documents,
        failures=failures,
        created_at=created_at,
    )
    out = staging_root / ASSEMBLE_INDEX_NAME
    write_text_atomic(out, json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
    return out
