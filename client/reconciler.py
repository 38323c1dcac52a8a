"""
Last-write-wins reconciliation of one collection.

Records are opaque dicts identified by a key field and carrying an
``updatedAt`` revision. The remote copy of a record replaces the local one
when its revision is greater than or equal to the local revision, so two
devices that stamped the same millisecond converge on whatever the endpoint
holds.
"""

from typing import Any, Dict, Iterable, List

from shared.models import REVISION_FIELD
from shared.utils import to_number

ABSENT_REVISION = -1


def normalize_revision(record: Dict[str, Any]) -> float:
    """Revision of a record, 0 when missing or not numeric"""
    return to_number(record.get(REVISION_FIELD), default=0)


def _keyed(records: Iterable[Any], key_field: str):
    for record in records or []:
        if not isinstance(record, dict):
            continue
        value = record.get(key_field)
        if not value:
            continue
        yield str(value), record


def merge_records(local: List[Dict[str, Any]], remote: List[Dict[str, Any]],
                  key_field: str) -> List[Dict[str, Any]]:
    """Merge a local and a remote snapshot of the same collection.

    Rows that are not records or have no key are dropped from both sides.
    Output keeps local order, with records only known remotely appended in
    remote order.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    revisions: Dict[str, float] = {}

    for key, record in _keyed(local, key_field):
        merged[key] = record
        revisions[key] = normalize_revision(record)

    for key, record in _keyed(remote, key_field):
        remote_rev = normalize_revision(record)
        if remote_rev >= revisions.get(key, ABSENT_REVISION):
            merged[key] = record
            revisions[key] = remote_rev

    return list(merged.values())


def merge_singleton(local: Dict[str, Any], remote: Any) -> Dict[str, Any]:
    """Pick the newer of two copies of a single-record collection (ties go remote)"""
    if not isinstance(remote, dict) or not remote:
        return local
    if not isinstance(local, dict) or not local:
        return remote
    if normalize_revision(remote) >= normalize_revision(local):
        return remote
    return local
