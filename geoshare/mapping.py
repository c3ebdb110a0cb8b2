"""
geoshare.mapping
~~~~~~~~~~~~~~~~

This module implements the resolution of a geography key to the users mapped
to it.

Two hierarchies exist. Regions map to users directly through user geography
mappings, and indirectly through depots. Postal codes map to users directly
through user geography lines, and indirectly through plants.
"""

from logging import info
from typing import Dict, List, Optional, Tuple

from geoshare import schema
from geoshare.clients.store import RecordStore
from geoshare.extract import option_code, ref_id
from geoshare.models import CandidateUser, Dimension, Resolution
from geoshare.query import Link, Operator, Query


def segment_filter(segment_value: Optional[int]) -> Tuple[int, ...]:
    """ Map a record segment to the user segments that may see the record.

    :param segment_value: The record's segment code, or `None` when unset.
    :return: A `tuple` of user segment codes.
    """
    if segment_value == schema.RECORD_SEGMENT_A:
        return (schema.USER_SEGMENT_B,)
    if segment_value == schema.RECORD_SEGMENT_C:
        return (schema.USER_SEGMENT_D,)
    return schema.ALL_USER_SEGMENTS


def user_link(exclude_user_id: str, lobs: Tuple[int, ...], segments: Tuple[int, ...]) -> Link:
    """ Build the inner join that restricts mapping rows to eligible users.

    Line of business and segment are picklists, so their codes are matched
    as strings.
    """
    return (
        Link(schema.USER_ENTITY, schema.MAPPING_USER_FIELD, schema.USER_ID_FIELD)
        .select(*schema.USER_COLUMNS)
        .where(schema.USER_LOB_FIELD, Operator.IN, picklist(lobs))
        .where(schema.USER_SEGMENT_FIELD, Operator.IN, picklist(segments))
        .where(schema.USER_ID_FIELD, Operator.NE, exclude_user_id)
    )


def picklist(codes: Tuple[int, ...]) -> Tuple[str, ...]:
    return tuple(str(code) for code in codes)


def user_query(
    entity: str, field: str, value: str, link: Link
) -> Query:
    """ Build a query for the user rows of one mapping entity. """
    return (
        Query(entity)
        .select("Id", schema.MAPPING_NAME_FIELD, schema.MAPPING_USER_FIELD)
        .where(field, Operator.EQ, value)
        .join(link)
        .order_by(schema.MAPPING_NAME_FIELD)
    )


class MappingResolver:
    """ Implement the `MappingResolver` class.

    :param store: A `RecordStore` instance.
    """

    def __init__(self, store: RecordStore):
        self.store: RecordStore = store

    def resolve(
        self,
        dimension: Dimension,
        key: str,
        exclude_user_id: str,
        segment_value: Optional[int] = None,
    ) -> Resolution:
        if dimension is Dimension.POSTAL_CODE:
            return self.resolve_by_postal_code(key, exclude_user_id, segment_value)
        return self.resolve_by_region(key, exclude_user_id, segment_value)

    def resolve_by_region(
        self, region_id: str, exclude_user_id: str, segment_value: Optional[int] = None
    ) -> Resolution:
        """ Resolve the users of a region.

        :param region_id: The region's id.
        :param exclude_user_id: A user that must never be returned.
        :param segment_value: The record's segment code.
        :return: A `Resolution` with direct and depot users.
        """
        info(f"Fetching users for region {region_id}, segment {segment_value}")
        direct: List[CandidateUser] = self._direct(
            schema.USER_GEOGRAPHY_MAPPING_ENTITY,
            schema.REGION_FIELD,
            region_id,
            exclude_user_id,
            segment_value,
        )
        indirect: List[CandidateUser] = self._indirect(
            schema.DEPOT_MAPPING_ENTITY,
            schema.REGION_FIELD,
            schema.DEPOT_FIELD,
            region_id,
            schema.USER_GEOGRAPHY_MAPPING_ENTITY,
            schema.DEPOT_FIELD,
            exclude_user_id,
        )

        return Resolution(direct=direct, indirect=indirect)

    def resolve_by_postal_code(
        self, pincode_id: str, exclude_user_id: str, segment_value: Optional[int] = None
    ) -> Resolution:
        """ Resolve the users of a postal code.

        :param pincode_id: The postal code's id.
        :param exclude_user_id: A user that must never be returned.
        :param segment_value: The record's segment code.
        :return: A `Resolution` with direct and plant users.
        """
        info(f"Fetching users for pincode {pincode_id}, segment {segment_value}")
        direct: List[CandidateUser] = self._direct(
            schema.USER_GEOGRAPHY_LINE_ENTITY,
            schema.PINCODE_FIELD,
            pincode_id,
            exclude_user_id,
            segment_value,
        )
        indirect: List[CandidateUser] = self._indirect(
            schema.PLANT_MAPPING_ENTITY,
            schema.PINCODE_FIELD,
            schema.PLANT_FIELD,
            pincode_id,
            schema.USER_GEOGRAPHY_LINE_ENTITY,
            schema.CITY_FIELD,
            exclude_user_id,
        )

        return Resolution(direct=direct, indirect=indirect)

    def _direct(
        self,
        entity: str,
        field: str,
        key: str,
        exclude_user_id: str,
        segment_value: Optional[int],
    ) -> List[CandidateUser]:
        link: Link = user_link(
            exclude_user_id, schema.DIRECT_LOBS, segment_filter(segment_value)
        )
        rows: List[Dict] = self.store.query(user_query(entity, field, key, link))

        candidates: List[CandidateUser] = []
        seen: set = set()
        for candidate in _candidates(rows, link):
            if candidate.user_id not in seen:
                seen.add(candidate.user_id)
                candidates.append(candidate)

        info(f"Found {len(candidates)} users in {entity} for {key}")
        return candidates

    def _indirect(
        self,
        mapping_entity: str,
        key_field: str,
        unit_field: str,
        key: str,
        line_entity: str,
        line_field: str,
        exclude_user_id: str,
    ) -> List[CandidateUser]:
        """ Resolve users through depot or plant mappings.

        The segment filter never applies at this level; all user segments
        of the indirect line of business are eligible.
        """
        query: Query = (
            Query(mapping_entity)
            .select("Id", unit_field, key_field)
            .where(key_field, Operator.EQ, key)
            .order_by(schema.MAPPING_NAME_FIELD)
            .unique()
        )
        mappings: List[Dict] = self.store.query(query)
        info(f"Found {len(mappings)} {mapping_entity} rows for {key}")

        candidates: List[CandidateUser] = []
        for mapping in mappings:
            unit_id: Optional[str] = ref_id(mapping.get(unit_field))
            if not unit_id:
                continue

            link: Link = user_link(
                exclude_user_id, schema.INDIRECT_LOBS, schema.ALL_USER_SEGMENTS
            )
            rows: List[Dict] = self.store.query(
                user_query(line_entity, line_field, unit_id, link)
            )
            found: List[CandidateUser] = list(_candidates(rows, link))
            info(f"Found {len(found)} users for {unit_field} {unit_id}")
            candidates.extend(found)

        return candidates


def _candidates(rows: List[Dict], link: Link):
    """ Yield a `CandidateUser` for every row that references a user. """
    for row in rows:
        user_id: Optional[str] = ref_id(row.get(schema.MAPPING_USER_FIELD))
        if not user_id:
            continue

        yield CandidateUser(
            user_id=user_id,
            mapping_name=row.get(schema.MAPPING_NAME_FIELD) or "",
            line_of_business=option_code(row.get(link.column_key(schema.USER_LOB_FIELD))),
            segment=option_code(row.get(link.column_key(schema.USER_SEGMENT_FIELD))),
            role=option_code(row.get(link.column_key(schema.USER_ROLE_FIELD))),
        )
