"""
geoshare.clients.store
~~~~~~~~~~~~~~~~~~~~~~

This module contains the interface every record store client implements.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from geoshare.models import AccessRights, Reference
from geoshare.query import Query


class RecordStore(ABC):
    """ Implement the `RecordStore` interface.

    Every call is blocking. Implementations raise `StoreError` when the
    store rejects a call. `grant_access` and `revoke_access` must be
    idempotent: re-granting an existing principal or revoking an absent one
    succeeds without effect.
    """

    @abstractmethod
    def query(self, query: Query) -> List[Dict]:
        """ Run a structured query.

        Linked columns appear in each row under `Link.column_key`.

        :param query: A `Query` object.
        :return: A `list` of row `dict` objects.
        """

    @abstractmethod
    def retrieve(self, entity: str, record_id: str, columns: Iterable[str]) -> Dict:
        """ Look up named attributes of a single row. """

    @abstractmethod
    def update(self, entity: str, record_id: str, values: Dict) -> None:
        """ Write a partial set of attributes on a single row. """

    @abstractmethod
    def grant_access(
        self, target: Reference, principal_id: str, rights: AccessRights
    ) -> None:
        """ Share `target` with a user. """

    @abstractmethod
    def revoke_access(self, target: Reference, principal_id: str) -> None:
        """ Remove a user's share on `target`. """

    @abstractmethod
    def get_config_value(self, name: str) -> Optional[str]:
        """ Read a configuration value, or `None` when it is not defined. """

    def valid_user_id(self, value: str) -> bool:
        """ Tell whether a config value is a well-formed user id for this store. """
        return bool(value) and not any(c.isspace() for c in value)

    def as_user(self, user_id: str) -> "RecordStore":
        """ Return a store whose calls act as `user_id`.

        Stores without impersonation support return themselves.
        """
        return self
