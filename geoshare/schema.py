"""
geoshare.schema
~~~~~~~~~~~~~~~

This module contains the entity names, field names and option codes of the
record store schema, along with the ownership priority table.

The option codes are reference data owned by the store's configuration. They
are collected here so that every query and every slot test reads from a single
place.
"""

from typing import Tuple

# Snapshot fields carried by the triggering record.
PRE_LEAD_FIELD = "Pre_Lead__c"
LEAD_FIELD = "Lead__c"
OPPORTUNITY_FIELD = "Opportunity__c"
PINCODE_FIELD = "Pincode__c"
REGION_FIELD = "Region__c"
SEGMENT_FIELD = "Segment__c"

# Parent records.
PRE_LEAD_ENTITY = "Pre_Lead__c"
LEAD_ENTITY = "Lead"
OPPORTUNITY_ENTITY = "Opportunity"

OWNER_FIELD = "OwnerId"
OWNER_CHANGED_FIELD = "Owner_Changed__c"
CREATED_BY_FIELD = "CreatedById"
PRE_LEAD_COLUMNS: Tuple[str, ...] = (
    "Id",
    OWNER_FIELD,
    OWNER_CHANGED_FIELD,
    CREATED_BY_FIELD,
)

# Users and their classification.
USER_ENTITY = "User"
USER_ID_FIELD = "Id"
USER_LOB_FIELD = "Line_Of_Business__c"
USER_SEGMENT_FIELD = "Segment__c"
USER_ROLE_FIELD = "Role__c"
USER_COLUMNS: Tuple[str, ...] = (USER_LOB_FIELD, USER_SEGMENT_FIELD, USER_ROLE_FIELD)

# Region hierarchy: region -> depot -> user, or region -> user.
USER_GEOGRAPHY_MAPPING_ENTITY = "User_Geography_Mapping__c"
DEPOT_MAPPING_ENTITY = "Depot_Region_Mapping__c"
DEPOT_FIELD = "Depot__c"

# Postal-code hierarchy: pincode -> plant -> user, or pincode -> user.
USER_GEOGRAPHY_LINE_ENTITY = "User_Geography_Line__c"
PLANT_MAPPING_ENTITY = "Plant_Pincode_Mapping__c"
PLANT_FIELD = "Plant__c"
CITY_FIELD = "City__c"

MAPPING_USER_FIELD = "User__c"
MAPPING_NAME_FIELD = "Name"

# Line-of-business allow-lists.
DIRECT_LOBS: Tuple[int, ...] = (100000002, 100000000)
INDIRECT_LOBS: Tuple[int, ...] = (100000001,)

# Record segments (on leads) and user segments.
RECORD_SEGMENT_A = 100000001
RECORD_SEGMENT_C = 100000000
USER_SEGMENT_B = 100000002
USER_SEGMENT_D = 100000001
ALL_USER_SEGMENTS: Tuple[int, ...] = (USER_SEGMENT_B, USER_SEGMENT_D)

# Ownership slots as (priority, user segment, user role), highest priority first.
ROLE_SLOTS: Tuple[Tuple[int, int, int], ...] = (
    (1, USER_SEGMENT_B, 515140004),
    (2, USER_SEGMENT_B, 515140005),
    (3, USER_SEGMENT_D, 515140010),
    (4, USER_SEGMENT_D, 515140001),
    (5, USER_SEGMENT_D, 100000004),
    (6, USER_SEGMENT_D, 515140009),
)

# Name of the config value that re-scopes the acting principal.
CONTEXT_USER_VARIABLE = "Context_User_Id"
