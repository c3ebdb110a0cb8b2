"""
geoshare.clients.salesforce
~~~~~~~~~~~~~~~~~~~~~~~~~~~

This module contains a high-level Salesforce API client class.
"""

import os
import re
from logging import debug, warning
from typing import Dict, Iterable, List, Optional, Tuple

from geoshare.clients.store import RecordStore
from geoshare.exceptions import StoreError
from geoshare.models import AccessRights, Reference
from geoshare.query import Operator, Query

import requests as rq
import simple_salesforce as ss

SETTINGS_ENTITY = "Geo_Share_Setting__mdt"
USER_ID_PATTERN = re.compile(r"^005[a-zA-Z0-9]{12}(?:[a-zA-Z0-9]{3})?$")

# Apex sharing reason on custom objects; unlike manual shares, these rows
# survive an owner change.
SHARING_REASON = "Geo_Share__c"
MANUAL = "Manual"


class SalesforceClient(RecordStore):
    """ Implement the `SalesforceClient` class.

    This class contains a high-level controlled interface for interacting with the
    Salesforce API within the context of the geoshare system.

    It requires the presence of a username, password, token, and organization ID
    in order to authenticate properly with the API. Those values must be stored in
    environment variables `SF_USERNAME`, `SF_PASSWORD`, `SF_TOKEN`, and `SF_ORG_ID`
    respectively. `SF_DOMAIN` selects the login host and defaults to `login`.

    :param api: An authenticated `simple_salesforce.Salesforce` instance. When
                omitted, one is built from the environment.
    """

    def __init__(self, api: ss.Salesforce = None):
        self.domain: str = os.getenv("SF_DOMAIN", "login")
        self.api: ss.Salesforce = api or ss.Salesforce(
            username=os.getenv("SF_USERNAME"),
            password=os.getenv("SF_PASSWORD"),
            security_token=os.getenv("SF_TOKEN"),
            organizationId=os.getenv("SF_ORG_ID"),
            domain=self.domain,
            session=rq.Session(),
        )

    def query(self, query: Query) -> List[Dict]:
        soql: str = query.to_soql()
        debug(f"SOQL: {soql}")

        try:
            records: list = self.api.query_all(soql)["records"]
        except (ss.SalesforceError, rq.RequestException) as e:
            raise StoreError("query", query.entity, str(e)) from e

        rows: List[Dict] = [_flatten(record) for record in records]
        if query.distinct:
            rows = _distinct(rows, query.columns)

        return rows

    def retrieve(self, entity: str, record_id: str, columns: Iterable[str]) -> Dict:
        query: Query = Query(entity).select(*columns).where("Id", Operator.EQ, record_id)
        rows: List[Dict] = self.query(query)

        if not rows:
            raise StoreError("retrieve", entity, f"no record with id {record_id}")

        return rows[0]

    def update(self, entity: str, record_id: str, values: Dict) -> None:
        try:
            getattr(self.api, entity).update(record_id, values)
        except (ss.SalesforceError, rq.RequestException) as e:
            raise StoreError("update", entity, str(e)) from e

    def grant_access(
        self, target: Reference, principal_id: str, rights: AccessRights
    ) -> None:
        """ Insert a share row for a user.

        Custom objects are shared under the `Geo_Share__c` sharing reason, so
        the rows outlive the pre-lead owner transfer. Standard objects only
        accept manual shares. Neither kind can carry `All`, so any mask that
        includes `WRITE` maps to `Edit`. Inserting a share that already exists
        updates it in place.

        :param target: A `Reference` to the shared record.
        :param principal_id: The user to share with.
        :param rights: An `AccessRights` mask.
        """
        share, parent_field, level_field = _share_object(target.entity)
        level: str = "Edit" if rights & AccessRights.WRITE else "Read"
        row: dict = {
            parent_field: target.id,
            "UserOrGroupId": principal_id,
            level_field: level,
        }
        if _is_custom(target.entity):
            row["RowCause"] = SHARING_REASON

        try:
            getattr(self.api, share).create(row)
        except (ss.SalesforceError, rq.RequestException) as e:
            raise StoreError("grant", share, str(e)) from e

    def revoke_access(self, target: Reference, principal_id: str) -> None:
        """ Delete the share rows this system created for a user on a record. """
        share, parent_field, _ = _share_object(target.entity)
        query: Query = (
            Query(share)
            .select("Id")
            .where(parent_field, Operator.EQ, target.id)
            .where("UserOrGroupId", Operator.EQ, principal_id)
            .where("RowCause", Operator.EQ, _row_cause(target.entity))
        )

        for row in self.query(query):
            try:
                getattr(self.api, share).delete(row["Id"])
            except (ss.SalesforceError, rq.RequestException) as e:
                raise StoreError("revoke", share, str(e)) from e

    def get_config_value(self, name: str) -> Optional[str]:
        """ Read a value from the `Geo_Share_Setting__mdt` custom metadata. """
        if not name:
            warning("Config value name is empty.")
            return None

        query: Query = (
            Query(SETTINGS_ENTITY)
            .select("Value__c")
            .where("DeveloperName", Operator.EQ, name)
        )
        rows: List[Dict] = self.query(query)

        return rows[0].get("Value__c") if rows else None

    def valid_user_id(self, value: str) -> bool:
        """ Accept 15- and 18-character ids with the `User` key prefix. """
        return bool(USER_ID_PATTERN.match(value or ""))

    def as_user(self, user_id: str) -> RecordStore:
        """ Open a session as another user through the JWT bearer flow.

        This requires a connected app whose consumer key and private key file
        are stored in `SF_CONSUMER_KEY` and `SF_PRIVATE_KEY_FILE`. Without
        them the current session is kept.

        :param user_id: The id of the user to act as.
        """
        consumer_key: str = os.getenv("SF_CONSUMER_KEY")
        key_file: str = os.getenv("SF_PRIVATE_KEY_FILE")
        if not (consumer_key and key_file):
            warning(f"No connected app configured; not acting as {user_id}.")
            return self

        username: str = self.retrieve("User", user_id, ["Username"])["Username"]

        try:
            api: ss.Salesforce = ss.Salesforce(
                username=username,
                consumer_key=consumer_key,
                privatekey_file=key_file,
                domain=self.domain,
            )
        except (ss.SalesforceError, rq.RequestException) as e:
            raise StoreError("login", "User", str(e)) from e

        return SalesforceClient(api=api)


def _share_object(entity: str) -> Tuple[str, str, str]:
    """ Name the share object of an entity and its parent and level fields.

    :param entity: An entity name, e.g. `Lead` or `Pre_Lead__c`.
    :return: A `tuple` of share entity, parent field and access level field.
    """
    if _is_custom(entity):
        return entity[:-3] + "__Share", "ParentId", "AccessLevel"

    return f"{entity}Share", f"{entity}Id", f"{entity}AccessLevel"


def _is_custom(entity: str) -> bool:
    return entity.endswith("__c")


def _row_cause(entity: str) -> str:
    return SHARING_REASON if _is_custom(entity) else MANUAL


def _flatten(record: dict, prefix: str = "") -> dict:
    """ Flatten nested relationship records into dotted keys. """
    row: dict = {}
    for key, value in record.items():
        if key == "attributes":
            continue
        if isinstance(value, dict):
            row.update(_flatten(value, f"{prefix}{key}."))
        else:
            row[f"{prefix}{key}"] = value

    return row


def _distinct(rows: List[Dict], columns: List[str]) -> List[Dict]:
    seen: set = set()
    unique: List[Dict] = []
    for row in rows:
        key: tuple = tuple(row.get(c) for c in columns)
        if key not in seen:
            seen.add(key)
            unique.append(row)

    return unique
