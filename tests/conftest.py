from typing import Dict, List, Optional, Set, Tuple

import pytest

from geoshare import schema
from geoshare.clients.store import RecordStore
from geoshare.exceptions import StoreError
from geoshare.models import AccessRights, Reference
from geoshare.query import Query

MUTATIONS = ("update", "grant", "revoke")


def sfid(prefix: str, n: int) -> str:
    return f"{prefix}{n:012d}AAA"


class FakeStore(RecordStore):
    """In-memory store that evaluates `Query` objects and records every call."""

    def __init__(self, tables: Dict[str, List[dict]] = None, config: Dict[str, str] = None):
        self.tables: Dict[str, List[dict]] = tables or {}
        self.config: Dict[str, str] = config or {}
        self.calls: List[tuple] = []
        self.shares: Dict[Tuple[str, str], AccessRights] = {}
        self.acting_as: Optional[str] = None
        self.fail_on: Set[str] = set()

    def add(self, entity: str, **row) -> dict:
        self.tables.setdefault(entity, []).append(row)
        return row

    @property
    def mutations(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in MUTATIONS]

    def calls_of(self, kind: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == kind]

    def _check(self, operation: str, entity: str) -> None:
        if operation in self.fail_on:
            raise StoreError(operation, entity, "rejected")

    def _find(self, entity: str, field: str, value) -> Optional[dict]:
        for row in self.tables.get(entity, []):
            if row.get(field) == value:
                return row
        return None

    def query(self, query: Query) -> List[dict]:
        self.calls.append(("query", query.entity))
        self._check("query", query.entity)

        matched: List[Tuple[dict, dict]] = []
        for row in self.tables.get(query.entity, []):
            if not all(c.operator.test(row.get(c.field), c.value) for c in query.conditions):
                continue

            out: dict = {column: row.get(column) for column in query.columns}
            link = query.link
            if link:
                linked = self._find(link.entity, link.from_field, row.get(link.to_field))
                if linked is None:
                    continue
                if not all(c.operator.test(linked.get(c.field), c.value) for c in link.conditions):
                    continue
                for column in link.columns:
                    out[link.column_key(column)] = linked.get(column)

            matched.append((row, out))

        if query.order:
            name, descending = query.order
            matched.sort(key=lambda pair: pair[0].get(name) or "", reverse=descending)
        rows: List[dict] = [out for _, out in matched]

        if query.distinct:
            seen: set = set()
            unique: List[dict] = []
            for row in rows:
                key = tuple(row.get(c) for c in query.columns)
                if key not in seen:
                    seen.add(key)
                    unique.append(row)
            rows = unique

        return rows

    def retrieve(self, entity: str, record_id: str, columns) -> dict:
        self.calls.append(("retrieve", entity, record_id))
        self._check("retrieve", entity)

        row = self._find(entity, "Id", record_id)
        if row is None:
            raise StoreError("retrieve", entity, f"no record with id {record_id}")
        return {column: row.get(column) for column in columns}

    def update(self, entity: str, record_id: str, values: dict) -> None:
        self.calls.append(("update", entity, record_id, dict(values)))
        self._check("update", entity)
        self._find(entity, "Id", record_id).update(values)

    def grant_access(self, target: Reference, principal_id: str, rights: AccessRights) -> None:
        self.calls.append(("grant", target.id, principal_id, rights))
        self._check("grant", target.entity)
        self.shares[(target.id, principal_id)] = rights

    def revoke_access(self, target: Reference, principal_id: str) -> None:
        self.calls.append(("revoke", target.id, principal_id))
        self._check("revoke", target.entity)
        self.shares.pop((target.id, principal_id), None)

    def get_config_value(self, name: str) -> Optional[str]:
        self.calls.append(("config", name))
        return self.config.get(name)

    def as_user(self, user_id: str) -> RecordStore:
        self.acting_as = user_id
        return self


# Users: (segment, role, line of business), stored as picklist strings
SEG_B = schema.USER_SEGMENT_B
SEG_D = schema.USER_SEGMENT_D

INITIATOR = sfid("005", 1)
CREATOR = sfid("005", 2)
CONTEXT_USER = sfid("005", 3)
U1 = sfid("005", 11)  # slot 1
U2 = sfid("005", 12)  # slot 2
U3 = sfid("005", 13)  # slot 3
U4 = sfid("005", 14)  # slot 4
U5 = sfid("005", 15)  # segment B, no slot
RMC1 = sfid("005", 16)  # indirect line of business, slot 6
OTHER_LOB = sfid("005", 17)
ORIGINAL_OWNER = sfid("005", 18)

P1 = sfid("a0P", 1)
P2 = sfid("a0P", 2)
P3 = sfid("a0P", 3)
R1 = sfid("a0R", 1)
R2 = sfid("a0R", 2)
PLANT1 = sfid("a0T", 1)
DEPOT1 = sfid("a0D", 1)

PRE_LEAD_ID = sfid("a0L", 1)
LEAD_ID = sfid("00Q", 1)
OPPORTUNITY_ID = sfid("006", 1)


def build_store() -> FakeStore:
    store = FakeStore(config={schema.CONTEXT_USER_VARIABLE: CONTEXT_USER})

    users = [
        (INITIATOR, SEG_B, 515140004, 100000002),
        (CREATOR, SEG_B, 1, 100000002),
        (U1, SEG_B, 515140004, 100000002),
        (U2, SEG_B, 515140005, 100000000),
        (U3, SEG_D, 515140010, 100000002),
        (U4, SEG_D, 515140001, 100000002),
        (U5, SEG_B, 1, 100000002),
        (RMC1, SEG_D, 515140009, 100000001),
        (OTHER_LOB, SEG_B, 515140004, 999),
    ]
    for user_id, segment, role, lob in users:
        store.add(
            schema.USER_ENTITY,
            Id=user_id,
            Segment__c=str(segment),
            Role__c=str(role),
            Line_Of_Business__c=str(lob),
        )

    lines = [
        ("P1-05", P1, U5),
        ("P1-01", P1, U1),
        ("P1-02", P1, U2),
        ("P1-03", P1, U3),
        ("P1-04", P1, U4),
        ("P1-06", P1, INITIATOR),
        ("P1-07", P1, OTHER_LOB),
        ("P3-01", P3, U3),
    ]
    for name, pincode, user_id in lines:
        store.add(schema.USER_GEOGRAPHY_LINE_ENTITY, Id=f"line-{name}", Name=name, Pincode__c=pincode, User__c=user_id)

    store.add(schema.PLANT_MAPPING_ENTITY, Id="plant-map-1", Name="PM-1", Pincode__c=P2, Plant__c=PLANT1)
    store.add(schema.PLANT_MAPPING_ENTITY, Id="plant-map-2", Name="PM-2", Pincode__c=P2, Plant__c=None)
    store.add(schema.USER_GEOGRAPHY_LINE_ENTITY, Id="line-plant", Name="PL-01", City__c=PLANT1, User__c=RMC1)

    mappings = [
        ("R1-01", R1, U3),
        ("R1-02", R1, U4),
        ("R2-01", R2, U1),
    ]
    for name, region, user_id in mappings:
        store.add(schema.USER_GEOGRAPHY_MAPPING_ENTITY, Id=f"map-{name}", Name=name, Region__c=region, User__c=user_id)

    store.add(schema.DEPOT_MAPPING_ENTITY, Id="depot-map-1", Name="DM-1", Region__c=R2, Depot__c=DEPOT1)
    store.add(schema.USER_GEOGRAPHY_MAPPING_ENTITY, Id="map-depot", Name="D-01", Depot__c=DEPOT1, User__c=RMC1)

    store.add(
        schema.PRE_LEAD_ENTITY,
        Id=PRE_LEAD_ID,
        Segment__c=str(schema.RECORD_SEGMENT_A),
        OwnerId=ORIGINAL_OWNER,
        Owner_Changed__c=False,
        CreatedById=CREATOR,
    )
    store.add(schema.LEAD_ENTITY, Id=LEAD_ID, Segment__c=None)
    store.add(schema.OPPORTUNITY_ENTITY, Id=OPPORTUNITY_ID, Segment__c=str(schema.RECORD_SEGMENT_C))

    return store


@pytest.fixture()
def store() -> FakeStore:
    return build_store()
