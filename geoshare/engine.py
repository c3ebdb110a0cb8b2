"""
geoshare.engine
~~~~~~~~~~~~~~~

This module implements the entry point the host calls once per create or
update event on a record carrying a geography.

An invocation runs only when the host's depth counter is at least one, the
context user config value is defined, and no invocation for the same record
and correlation id is already running in this engine. Every store failure
aborts the invocation; calls that already succeeded are not rolled back.
"""

import os
from contextlib import contextmanager
from logging import error, info, warning
from typing import Generator, Hashable, Optional

from geoshare import schema
from geoshare.access import AccessDiffEngine
from geoshare.clients.store import RecordStore
from geoshare.exceptions import ShareRecordError
from geoshare.extract import extract_keys, option_code
from geoshare.mapping import MappingResolver
from geoshare.models import GeographyKeys, Invocation, RecordKind, Resolution, ShareResult
from geoshare.ownership import OwnerResolver, OwnershipTransfer, needs_owner


class ReentryGuard:
    """ Implement the `ReentryGuard` class.

    Holds the keys of the invocations currently running. A key is released
    as soon as its invocation ends, so nothing is remembered between
    invocations.
    """

    def __init__(self):
        self._active: set = set()

    @contextmanager
    def hold(self, key: Hashable) -> Generator[bool, None, None]:
        if key in self._active:
            yield False
            return

        self._active.add(key)
        try:
            yield True
        finally:
            self._active.discard(key)


class ShareRecordEngine:
    """ Implement the `ShareRecordEngine` class.

    :param store: The `RecordStore` to act on.
    :param config_name: The config value naming the user to act as. Defaults
                        to the `GEOSHARE_CONTEXT_VARIABLE` environment
                        variable, then to `Context_User_Id`.
    :param guard: A `ReentryGuard`. Hosts that run nested invocations through
                  separate engines pass a shared one.
    """

    def __init__(
        self, store: RecordStore, config_name: str = None, guard: ReentryGuard = None
    ):
        self.store: RecordStore = store
        self.config_name: str = config_name or os.getenv(
            "GEOSHARE_CONTEXT_VARIABLE", schema.CONTEXT_USER_VARIABLE
        )
        self.guard: ReentryGuard = guard or ReentryGuard()

    def execute(self, invocation: Invocation) -> ShareResult:
        """ Share the event's record with the users of its geography.

        :param invocation: An `Invocation` object.
        :return: A `ShareResult` describing every call made.
        :raises ShareRecordError: When any store call fails.
        """
        try:
            return self._execute(invocation)
        except Exception as e:
            error(f"Error in execute: {e}")
            raise ShareRecordError(f"An error occurred while sharing record: {e}") from e

    def _execute(self, invocation: Invocation) -> ShareResult:
        result: ShareResult = ShareResult()

        context_user: Optional[str] = self.store.get_config_value(self.config_name)
        if invocation.depth < 1 or not context_user:
            result.skipped = "gate"
            info(
                f"Skipping invocation at depth {invocation.depth}; "
                f"{self.config_name} is {'set' if context_user else 'unset'}."
            )
            return result

        store: RecordStore = self._scoped_store(context_user)

        keys: GeographyKeys = extract_keys(invocation.before, invocation.after)
        result.keys = keys
        if keys.target is None or keys.dimension is None:
            result.skipped = "no geography"
            info("Nothing to share: no parent record or geography on the event.")
            return result

        with self.guard.hold((invocation.correlation_id, keys.record_id)) as acquired:
            if not acquired:
                result.skipped = "re-entry"
                info(f"Invocation for {keys.record_id} is already running.")
                return result

            self._share(store, invocation, keys, result)

        return result

    def _scoped_store(self, context_user: str) -> RecordStore:
        user_id: str = context_user.strip()
        if not self.store.valid_user_id(user_id):
            warning(f"Ignoring malformed {self.config_name} value {context_user!r}.")
            return self.store

        return self.store.as_user(user_id)

    def _share(
        self,
        store: RecordStore,
        invocation: Invocation,
        keys: GeographyKeys,
        result: ShareResult,
    ) -> None:
        segment_value: Optional[int] = record_segment(store, keys)

        access: AccessDiffEngine = AccessDiffEngine(store, MappingResolver(store))
        resolution: Optional[Resolution] = access.apply(
            keys, invocation.initiating_user_id, segment_value, result
        )

        if resolution is None or keys.kind is not RecordKind.PRE_LEAD:
            return

        transfer: OwnershipTransfer = OwnershipTransfer(store)
        pre_lead: dict = transfer.load(keys.record_id)
        if not needs_owner(pre_lead):
            return

        owner_id, slots = OwnerResolver(store).resolve(resolution.candidates)
        result.slots = slots
        if not owner_id:
            info(f"No candidate fills an owner slot; pre-lead {keys.record_id} keeps its owner.")
            return

        result.owner_id = owner_id
        result.extended = transfer.apply(
            pre_lead, keys.target, owner_id, invocation.initiating_user_id
        )


def record_segment(store: RecordStore, keys: GeographyKeys) -> Optional[int]:
    """ Read the current segment code of the event's parent record. """
    row: dict = store.retrieve(keys.object_name, keys.record_id, [schema.SEGMENT_FIELD])
    return option_code(row.get(schema.SEGMENT_FIELD))
