from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Sequence
from typing import Any


def canonical_json_dumps(data: Any) -> str:
    """Serialize JSON with sorted keys and compact separators."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def content_fingerprint(members: Iterable[tuple[str, bytes, Sequence[int] | None]]) -> str:
    """Fingerprint an archive by member name, content and optional entry date.

    Member order is ignored so that two archives with the same files in a
    different order collide. A member date of ``None`` leaves the date out.
    """
    digest = hashlib.sha256()
    for name, data, date_time in sorted(members, key=lambda item: item[0]):
        encoded = name.encode("utf-8")
        digest.update(len(encoded).to_bytes(4, "big"))
        digest.update(encoded)
        digest.update(len(data).to_bytes(8, "big"))
        digest.update(data)
        if date_time is not None:
            digest.update(canonical_json_dumps(list(date_time)).encode("ascii"))
    return digest.hexdigest()
