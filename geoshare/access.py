"""
geoshare.access
~~~~~~~~~~~~~~~

This module implements the grant and revoke decisions for a geography event.
"""

from logging import info
from typing import List, Optional

from geoshare.clients.store import RecordStore
from geoshare.mapping import MappingResolver
from geoshare.models import (
    PLAIN_RIGHTS,
    GeographyKeys,
    Reference,
    Resolution,
    ShareResult,
)


class AccessDiffEngine:
    """ Implement the `AccessDiffEngine` class.

    Grants and revokes are issued without looking at the current sharing
    state; the store treats repeated grants and absent revokes as no-ops.

    :param store: A `RecordStore` instance.
    :param resolver: A `MappingResolver` instance. Defaults to one on `store`.
    """

    def __init__(self, store: RecordStore, resolver: MappingResolver = None):
        self.store: RecordStore = store
        self.resolver: MappingResolver = resolver or MappingResolver(store)

    def apply(
        self,
        keys: GeographyKeys,
        exclude_user_id: str,
        segment_value: Optional[int],
        result: ShareResult,
    ) -> Optional[Resolution]:
        """ Revoke the old geography's users, then grant the new geography's.

        :param keys: The `GeographyKeys` of the event.
        :param exclude_user_id: The initiating user, never shared with here.
        :param segment_value: The record's current segment code.
        :param result: The invocation's `ShareResult`, extended in place.
        :return: The `Resolution` of the after key, or `None` without one.
        """
        target: Reference = keys.target

        if keys.is_change_event:
            before_segment: Optional[int] = (
                keys.before_segment if keys.before_segment is not None else segment_value
            )
            revoked: Resolution = self.resolver.resolve(
                keys.dimension, keys.before_key, exclude_user_id, before_segment
            )
            info(
                f"Revoking access for {len(revoked.candidates)} users "
                f"for {keys.dimension.name} {keys.before_key}"
            )
            result.revoked.extend(self.revoke(target, revoked))

        if not keys.after_key:
            return None

        granted: Resolution = self.resolver.resolve(
            keys.dimension, keys.after_key, exclude_user_id, segment_value
        )
        info(
            f"Granting access for {len(granted.candidates)} users "
            f"for {keys.dimension.name} {keys.after_key}"
        )
        result.granted.extend(self.grant(target, granted))

        return granted

    def revoke(self, target: Reference, resolution: Resolution) -> List[str]:
        revoked: List[str] = []
        for candidate in resolution.candidates:
            self.store.revoke_access(target, candidate.user_id)
            info(f"Revoked access for {candidate.user_id} from record {target.id}")
            revoked.append(candidate.user_id)

        return revoked

    def grant(self, target: Reference, resolution: Resolution) -> List[str]:
        granted: List[str] = []
        for candidate in resolution.candidates:
            self.store.grant_access(target, candidate.user_id, PLAIN_RIGHTS)
            info(f"Granted access to {candidate.user_id} for record {target.id}")
            granted.append(candidate.user_id)

        return granted
