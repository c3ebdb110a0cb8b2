"""
geoshare.models
~~~~~~~~~~~~~~~

This module implements data models.
"""

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Dict, List, Optional

from geoshare import schema


class RecordKind(Enum):
    """ Model the record types that receive shares.

    Each member carries the snapshot field that references the record and the
    store entity the record lives in.
    """

    PRE_LEAD = (schema.PRE_LEAD_FIELD, schema.PRE_LEAD_ENTITY)
    LEAD = (schema.LEAD_FIELD, schema.LEAD_ENTITY)
    OPPORTUNITY = (schema.OPPORTUNITY_FIELD, schema.OPPORTUNITY_ENTITY)

    def __init__(self, snapshot_field: str, entity: str):
        self.snapshot_field = snapshot_field
        self.entity = entity


class Dimension(Enum):
    """ Model the two mutually exclusive geography dimensions. """

    POSTAL_CODE = schema.PINCODE_FIELD
    REGION = schema.REGION_FIELD


class AccessRights(IntFlag):
    """ Model the rights mask of an access grant. """

    READ = 1
    WRITE = 2
    APPEND = 4
    APPEND_TO = 8
    ASSIGN = 16
    SHARE = 32


PLAIN_RIGHTS = (
    AccessRights.READ | AccessRights.WRITE | AccessRights.APPEND | AccessRights.APPEND_TO
)
EXTENDED_RIGHTS = PLAIN_RIGHTS | AccessRights.ASSIGN | AccessRights.SHARE


@dataclass(frozen=True)
class Reference:
    """ Model a typed pointer to a row in the record store. """

    entity: str
    id: str


@dataclass
class CandidateUser:
    """ Model a user resolved from a geography mapping row.

    The classification values come from the user join and may be `None` when
    the store did not return them.
    """

    user_id: str
    mapping_name: str = ""
    line_of_business: Optional[int] = None
    segment: Optional[int] = None
    role: Optional[int] = None


@dataclass(frozen=True)
class RoleSlot:
    """ Model one (segment, role) ownership priority bucket. """

    priority: int
    segment: int
    role: int

    def matches(self, segment: Optional[int], role: Optional[int]) -> bool:
        return segment == self.segment and role == self.role


@dataclass
class Resolution:
    """ Model the candidates of one geography key, split by pass. """

    direct: List[CandidateUser] = field(default_factory=list)
    indirect: List[CandidateUser] = field(default_factory=list)

    @property
    def candidates(self) -> List[CandidateUser]:
        return self.direct + self.indirect


@dataclass
class GeographyKeys:
    """ Model what the extractor learned from a pair of snapshots. """

    kind: Optional[RecordKind] = None
    record_id: Optional[str] = None
    dimension: Optional[Dimension] = None
    before_key: Optional[str] = None
    after_key: Optional[str] = None
    before_segment: Optional[int] = None

    @property
    def object_name(self) -> Optional[str]:
        return self.kind.entity if self.kind else None

    @property
    def target(self) -> Optional[Reference]:
        if self.kind is None or not self.record_id:
            return None
        return Reference(self.kind.entity, self.record_id)

    @property
    def is_change_event(self) -> bool:
        return bool(self.before_key and self.after_key and self.before_key != self.after_key)

    @property
    def is_first_assignment(self) -> bool:
        return bool(self.after_key) and not self.before_key


@dataclass
class Invocation:
    """ Model a single create/update event delivered by the host.

    :param before: The pre-event attribute snapshot, if any.
    :param after: The post-event attribute snapshot, if any.
    :param initiating_user_id: The user whose action fired the event.
    :param depth: The host's execution depth counter.
    :param correlation_id: An identifier shared by nested invocations of one
                           logical operation.
    """

    initiating_user_id: str
    before: Optional[Dict] = None
    after: Optional[Dict] = None
    depth: int = 1
    correlation_id: str = ""


@dataclass
class ShareResult:
    """ Model the outcome of one invocation. """

    keys: Optional[GeographyKeys] = None
    revoked: List[str] = field(default_factory=list)
    granted: List[str] = field(default_factory=list)
    slots: Dict[int, str] = field(default_factory=dict)
    owner_id: Optional[str] = None
    extended: List[str] = field(default_factory=list)
    skipped: Optional[str] = None
