import pytest

from geoshare import schema
from geoshare.mapping import MappingResolver, segment_filter, user_link, user_query
from geoshare.models import Dimension

from tests.conftest import (
    INITIATOR,
    OTHER_LOB,
    P1,
    P2,
    PLANT1,
    R1,
    R2,
    RMC1,
    U1,
    U2,
    U3,
    U4,
    U5,
)

SEGMENT_A = schema.RECORD_SEGMENT_A
SEGMENT_C = schema.RECORD_SEGMENT_C


@pytest.mark.parametrize(
    "segment_value,expected",
    [
        (SEGMENT_A, (schema.USER_SEGMENT_B,)),
        (SEGMENT_C, (schema.USER_SEGMENT_D,)),
        (None, (schema.USER_SEGMENT_B, schema.USER_SEGMENT_D)),
        (0, (schema.USER_SEGMENT_B, schema.USER_SEGMENT_D)),
        (42, (schema.USER_SEGMENT_B, schema.USER_SEGMENT_D)),
    ],
)
def test_segment_filter(segment_value, expected):
    assert segment_filter(segment_value) == expected


def _users(resolution):
    return [c.user_id for c in resolution.candidates]


def test_postal_code_direct_pass_is_ordered_and_excludes_user(store):
    resolution = MappingResolver(store).resolve_by_postal_code(P1, INITIATOR)

    assert _users(resolution) == [U1, U2, U3, U4, U5]
    assert INITIATOR not in _users(resolution)
    assert OTHER_LOB not in _users(resolution)
    assert resolution.indirect == []


def test_resolution_is_deterministic(store):
    resolver = MappingResolver(store)

    assert _users(resolver.resolve_by_postal_code(P1, INITIATOR)) == _users(
        resolver.resolve_by_postal_code(P1, INITIATOR)
    )


def test_excluded_user_can_be_any_candidate(store):
    assert U1 not in _users(MappingResolver(store).resolve_by_postal_code(P1, U1))


def test_segment_sets_partition_the_unsegmented_set(store):
    resolver = MappingResolver(store)
    everyone = set(_users(resolver.resolve_by_postal_code(P1, INITIATOR)))
    segment_a = set(_users(resolver.resolve_by_postal_code(P1, INITIATOR, SEGMENT_A)))
    segment_c = set(_users(resolver.resolve_by_postal_code(P1, INITIATOR, SEGMENT_C)))

    assert segment_a == {U1, U2, U5}
    assert segment_a <= everyone
    assert segment_a.isdisjoint(segment_c)
    assert segment_a | segment_c == everyone


def test_candidates_carry_user_classification(store):
    resolution = MappingResolver(store).resolve_by_postal_code(P1, INITIATOR, SEGMENT_A)
    first = resolution.direct[0]

    assert first.user_id == U1
    assert first.mapping_name == "P1-01"
    assert (first.segment, first.role, first.line_of_business) == (
        schema.USER_SEGMENT_B,
        515140004,
        100000002,
    )


def test_direct_pass_deduplicates_users(store):
    store.add(schema.USER_GEOGRAPHY_LINE_ENTITY, Id="line-dup", Name="P1-00", Pincode__c=P1, User__c=U1)

    users = _users(MappingResolver(store).resolve_by_postal_code(P1, INITIATOR))

    assert users.count(U1) == 1
    assert users[0] == U1


def test_postal_code_indirect_pass_goes_through_plants(store):
    resolution = MappingResolver(store).resolve_by_postal_code(P2, INITIATOR, SEGMENT_A)

    assert resolution.direct == []
    assert [c.user_id for c in resolution.indirect] == [RMC1]


def test_indirect_pass_ignores_segment_filter(store):
    # RMC1 is in segment D, which segment A would exclude on a direct line.
    resolution = MappingResolver(store).resolve_by_postal_code(P2, INITIATOR, SEGMENT_A)

    assert resolution.indirect[0].segment == schema.USER_SEGMENT_D


def test_duplicate_plant_mappings_are_collapsed(store):
    store.add(schema.PLANT_MAPPING_ENTITY, Id="plant-map-1", Name="PM-1", Pincode__c=P2, Plant__c=PLANT1)

    resolution = MappingResolver(store).resolve_by_postal_code(P2, INITIATOR)

    assert [c.user_id for c in resolution.indirect] == [RMC1]


def test_region_resolves_direct_then_depot_users(store):
    resolution = MappingResolver(store).resolve_by_region(R2, INITIATOR)

    assert [c.user_id for c in resolution.direct] == [U1]
    assert [c.user_id for c in resolution.indirect] == [RMC1]
    assert _users(resolution) == [U1, RMC1]


def test_region_direct_pass_applies_line_of_business(store):
    store.add(schema.USER_GEOGRAPHY_MAPPING_ENTITY, Id="map-rmc", Name="R1-00", Region__c=R1, User__c=RMC1)

    assert _users(MappingResolver(store).resolve_by_region(R1, INITIATOR)) == [U3, U4]


def test_resolve_dispatches_on_dimension(store):
    resolver = MappingResolver(store)

    assert _users(resolver.resolve(Dimension.REGION, R1, INITIATOR)) == [U3, U4]
    assert _users(resolver.resolve(Dimension.POSTAL_CODE, P2, INITIATOR)) == [RMC1]


def test_option_codes_are_sent_as_picklist_strings():
    link = user_link("005000000000001AAA", schema.DIRECT_LOBS, segment_filter(None))
    soql = user_query(schema.USER_GEOGRAPHY_LINE_ENTITY, schema.PINCODE_FIELD, "a0P1", link).to_soql()

    assert "User__r.Line_Of_Business__c IN (" in soql
    assert "'100000002'" in soql
    assert "'100000000'" in soql
    assert "'100000001'" in soql
    assert all(isinstance(code, str) for c in link.conditions[:2] for code in c.value)
