"""
geoshare.extract
~~~~~~~~~~~~~~~~

This module implements the extraction of geography keys from the before and
after snapshots of a triggering record.
"""

from logging import info
from typing import Any, Optional, Tuple

from geoshare import schema
from geoshare.models import Dimension, GeographyKeys, RecordKind, Reference


def extract_keys(before: Optional[dict], after: Optional[dict]) -> GeographyKeys:
    """ Work out which record and which geography an event concerns.

    The parent record comes from the after-snapshot only: the first of the
    pre-lead, lead and opportunity references that is set wins. A before key
    is kept only when both snapshots carry the same dimension, which is the
    one case where a revoke phase can happen.

    :param before: The pre-event snapshot `dict`, or `None`.
    :param after: The post-event snapshot `dict`, or `None`.
    :return: A `GeographyKeys` object.
    """
    keys: GeographyKeys = GeographyKeys()

    if after:
        for kind in RecordKind:
            record_id: Optional[str] = ref_id(after.get(kind.snapshot_field))
            if record_id:
                _assign(keys, kind, record_id)

    before_dimension, before_key = _geography(before)
    after_dimension, after_key = _geography(after)

    keys.dimension = after_dimension or before_dimension
    keys.after_key = after_key
    if before_dimension is not None and before_dimension == after_dimension:
        keys.before_key = before_key
        info(
            f"{before_dimension.name} comparison: before={before_key}, after={after_key}"
        )

    if before:
        keys.before_segment = option_code(before.get(schema.SEGMENT_FIELD))

    return keys


def ref_id(value: Any) -> Optional[str]:
    """ Read the id out of a snapshot lookup value.

    Hosts deliver lookups either as a bare id, as a `Reference`, or as a
    `dict` with an `Id` key.
    """
    if isinstance(value, Reference):
        return value.id or None
    if isinstance(value, dict):
        return value.get("Id") or value.get("id") or None
    return value or None


def _assign(keys: GeographyKeys, kind: RecordKind, record_id: str) -> None:
    if keys.kind is None and not keys.record_id:
        keys.kind = kind
        keys.record_id = record_id


def _geography(snapshot: Optional[dict]) -> Tuple[Optional[Dimension], Optional[str]]:
    if not snapshot:
        return None, None

    for dimension in (Dimension.POSTAL_CODE, Dimension.REGION):
        key: Optional[str] = ref_id(snapshot.get(dimension.value))
        if key:
            return dimension, key

    return None, None


def option_code(value: Any) -> Optional[int]:
    """ Read an option code, treating unset or unreadable values as `None`. """
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
