import json
from typing import Any, Iterable, List, Optional


def dedup_key(item: Any) -> Optional[str]:
    """
    Identity of a provider record: its `id` when present, otherwise its
    structural JSON form. Empty items have no identity.
    """
    if not item:
        return None
    if isinstance(item, dict) and item.get("id") not in (None, ""):
        return f"id:{item['id']}"
    try:
        return "json:" + json.dumps(item, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return f"repr:{item!r}"


def merge_unique(batches: Iterable[Iterable[Any]]) -> List[Any]:
    """
    Flatten batches in order, keeping the first occurrence of each item.
    """
    seen = set()
    merged: List[Any] = []
    for batch in batches:
        for item in batch:
            key = dedup_key(item)
            if key is None or key in seen:
                continue
            seen.add(key)
            merged.append(item)
    return merged
