"""
geoshare.ownership
~~~~~~~~~~~~~~~~~~

This module implements the choice of a single new owner for a pre-lead and
the transfer of ownership to that user.

Candidates are sorted into six (segment, role) slots. Each slot holds at most
one user, and the occupant of the highest-priority non-empty slot wins no
matter in which order the candidates were seen.
"""

from logging import info
from typing import Dict, Iterable, List, Optional, Tuple

from geoshare import schema
from geoshare.clients.store import RecordStore
from geoshare.extract import option_code, ref_id
from geoshare.models import EXTENDED_RIGHTS, CandidateUser, Reference, RoleSlot

SLOTS: Tuple[RoleSlot, ...] = tuple(RoleSlot(*slot) for slot in schema.ROLE_SLOTS)


def slot_for(segment: Optional[int], role: Optional[int]) -> Optional[RoleSlot]:
    """ Find the first slot, in priority order, that a classification fills. """
    for slot in SLOTS:
        if slot.matches(segment, role):
            return slot

    return None


def pick_winner(slots: Dict[int, str]) -> Optional[str]:
    """ Pick the occupant of the highest-priority non-empty slot.

    :param slots: A `dict` of slot priority to user id.
    :return: The winning user id, or `None` when every slot is empty.
    """
    for slot in SLOTS:
        if slots.get(slot.priority):
            return slots[slot.priority]

    return None


def needs_owner(pre_lead: Optional[dict]) -> bool:
    """ Tell whether a pre-lead still waits for its first owner change. """
    return bool(pre_lead) and pre_lead.get(schema.OWNER_CHANGED_FIELD, None) is False


class OwnerResolver:
    """ Implement the `OwnerResolver` class.

    :param store: A `RecordStore` instance, used to look up classifications
                  the mapping query did not return.
    """

    def __init__(self, store: RecordStore):
        self.store: RecordStore = store

    def assign_slots(self, candidates: Iterable[CandidateUser]) -> Dict[int, str]:
        """ Sort candidates into slots.

        A candidate fills at most one slot. When several candidates fit the
        same slot, the one seen last keeps it.

        :param candidates: An iterable of `CandidateUser` objects.
        :return: A `dict` of slot priority to user id.
        """
        slots: Dict[int, str] = {}
        for candidate in candidates:
            segment, role = self._classification(candidate)
            slot: Optional[RoleSlot] = slot_for(segment, role)
            if slot:
                slots[slot.priority] = candidate.user_id

        return slots

    def resolve(self, candidates: Iterable[CandidateUser]) -> Tuple[Optional[str], Dict[int, str]]:
        slots: Dict[int, str] = self.assign_slots(candidates)
        winner: Optional[str] = pick_winner(slots)
        info(f"Owner slots: {slots}; winner: {winner}")

        return winner, slots

    def _classification(self, candidate: CandidateUser) -> Tuple[Optional[int], Optional[int]]:
        if candidate.segment is not None and candidate.role is not None:
            return candidate.segment, candidate.role

        user: dict = self.store.retrieve(
            schema.USER_ENTITY,
            candidate.user_id,
            [schema.USER_SEGMENT_FIELD, schema.USER_ROLE_FIELD],
        )
        return (
            option_code(user.get(schema.USER_SEGMENT_FIELD)),
            option_code(user.get(schema.USER_ROLE_FIELD)),
        )


class OwnershipTransfer:
    """ Implement the `OwnershipTransfer` class.

    :param store: A `RecordStore` instance.
    """

    def __init__(self, store: RecordStore):
        self.store: RecordStore = store

    def load(self, pre_lead_id: str) -> dict:
        return self.store.retrieve(
            schema.PRE_LEAD_ENTITY, pre_lead_id, schema.PRE_LEAD_COLUMNS
        )

    def apply(
        self, pre_lead: dict, target: Reference, owner_id: str, initiating_user_id: str
    ) -> List[str]:
        """ Hand a pre-lead to its new owner.

        The owner and the owner-changed marker are written first. Extended
        rights then go to the initiating user and to the pre-lead's creator.

        :param pre_lead: The pre-lead row as returned by `load`.
        :param target: A `Reference` to the pre-lead.
        :param owner_id: The winning user id.
        :param initiating_user_id: The user whose action fired the event.
        :return: The `list` of user ids given extended rights.
        """
        self.store.update(
            target.entity,
            target.id,
            {schema.OWNER_FIELD: owner_id, schema.OWNER_CHANGED_FIELD: True},
        )
        info(f"Updated pre-lead {target.id} with new owner {owner_id}")

        grantees: List[str] = [initiating_user_id]
        creator: Optional[str] = ref_id(pre_lead.get(schema.CREATED_BY_FIELD))
        if creator:
            grantees.append(creator)

        for user_id in grantees:
            self.store.grant_access(target, user_id, EXTENDED_RIGHTS)
            info(f"Granted extended access to {user_id} for record {target.id}")

        return grantees
