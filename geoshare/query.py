"""
geoshare.query
~~~~~~~~~~~~~~

This module implements a small parameterized query builder.

A `Query` names an entity, its columns, a conjunction of conditions, an
optional inner join on a linked entity with its own conditions, an ordering,
and a distinct flag. It renders to SOQL through `simple_salesforce.format_soql`
so that every value is escaped by the library rather than pasted into the
query text.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from simple_salesforce import format_soql


class Operator(Enum):
    EQ = "="
    NE = "!="
    IN = "IN"

    def test(self, actual: Any, expected: Any) -> bool:
        """ Evaluate the operator against a single value. """
        if self is Operator.EQ:
            return actual == expected
        if self is Operator.NE:
            return actual != expected
        return actual in expected


@dataclass(frozen=True)
class Condition:
    field: str
    operator: Operator
    value: Any


def relationship_name(field_name: str) -> str:
    """ Derive the relationship name of a lookup field.

    `User__c` becomes `User__r`, and standard lookups such as `OwnerId`
    become `Owner`.
    """
    if field_name.endswith("__c"):
        return field_name[:-3] + "__r"
    if field_name.endswith("Id"):
        return field_name[:-2]
    return field_name


@dataclass
class Link:
    """ Model an inner join from the query's entity to a linked entity.

    :param entity: The linked entity, e.g. `User`.
    :param to_field: The lookup field on the query's entity.
    :param from_field: The key field on the linked entity.
    """

    entity: str
    to_field: str
    from_field: str = "Id"
    columns: List[str] = field(default_factory=list)
    conditions: List[Condition] = field(default_factory=list)

    @property
    def alias(self) -> str:
        return relationship_name(self.to_field)

    def where(self, field_name: str, operator: Operator, value: Any) -> "Link":
        self.conditions.append(Condition(field_name, operator, value))
        return self

    def select(self, *columns: str) -> "Link":
        self.columns.extend(columns)
        return self

    def column_key(self, column: str) -> str:
        """ Key under which a linked column appears in a result row. """
        return f"{self.alias}.{column}"


@dataclass
class Query:
    """ Implement the `Query` builder.

    Builder methods return the query itself, so a query reads top to bottom::

        Query("User_Geography_Line__c")
            .select("Id", "Name", "User__c")
            .where("Pincode__c", Operator.EQ, pincode_id)
            .join(Link("User", "User__c").where("Id", Operator.NE, user_id))
            .order_by("Name")
    """

    entity: str
    columns: List[str] = field(default_factory=list)
    conditions: List[Condition] = field(default_factory=list)
    link: Optional[Link] = None
    order: Optional[Tuple[str, bool]] = None
    distinct: bool = False

    def select(self, *columns: str) -> "Query":
        self.columns.extend(columns)
        return self

    def where(self, field_name: str, operator: Operator, value: Any) -> "Query":
        self.conditions.append(Condition(field_name, operator, value))
        return self

    def join(self, link: Link) -> "Query":
        self.link = link
        return self

    def order_by(self, field_name: str, descending: bool = False) -> "Query":
        self.order = (field_name, descending)
        return self

    def unique(self) -> "Query":
        self.distinct = True
        return self

    def to_soql(self) -> str:
        """ Render the query as escaped SOQL.

        The join is expressed through relationship traversal. A condition on
        the linked entity's key field is rewritten onto the lookup field, and
        the lookup is required to be non-null to keep the join inner. SOQL has
        no `DISTINCT`; distinct queries are deduplicated by the client.

        :return: A SOQL `str`.
        """
        columns: List[str] = list(self.columns)
        clauses: List[str] = []
        params: list = []

        for condition in self.conditions:
            clauses.append(f"{condition.field} {condition.operator.value} {{}}")
            params.append(self._param(condition))

        if self.link:
            columns.extend(self.link.column_key(c) for c in self.link.columns)
            clauses.append(f"{self.link.to_field} != null")
            for condition in self.link.conditions:
                if condition.field == self.link.from_field:
                    target = self.link.to_field
                else:
                    target = self.link.column_key(condition.field)
                clauses.append(f"{target} {condition.operator.value} {{}}")
                params.append(self._param(condition))

        soql: str = f"SELECT {', '.join(columns)} FROM {self.entity}"
        if clauses:
            soql += " WHERE " + " AND ".join(clauses)
        if self.order:
            name, descending = self.order
            soql += f" ORDER BY {name} {'DESC' if descending else 'ASC'}"

        return format_soql(soql, *params)

    @staticmethod
    def _param(condition: Condition) -> Any:
        if condition.operator is Operator.IN:
            return list(condition.value)
        return condition.value
