from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple, Union

COMBINATORS = ("and", "or")


def generate_filter_id() -> str:
    return f"flt-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class FilterCondition:
    """
    Leaf of a filter tree: `<field> <operator> <value>`.

    - field: dot-path into the row ("address.city")
    - operator: built-in or registered operator name
    - value: operand; ignored by no-value operators (isNull / isNotNull)
    """
    field: str
    operator: str
    value: Any = None
    id: str = field(default_factory=generate_filter_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True)
class FilterGroup:
    """
    Inner node of a filter tree combining its children with AND or OR.

    An empty AND group matches every row, an empty OR group matches none.
    """
    combinator: str = "and"
    children: Tuple[FilterNode, ...] = ()
    id: str = field(default_factory=generate_filter_id)

    def __post_init__(self) -> None:
        if self.combinator not in COMBINATORS:
            raise ValueError(f"combinator must be one of {COMBINATORS}, got {self.combinator!r}")
        # allow lists at construction time, store as tuple
        object.__setattr__(self, "children", tuple(self.children))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "combinator": self.combinator,
            "children": [child.to_dict() for child in self.children],
        }


FilterNode = Union[FilterCondition, FilterGroup]


def filter_from_dict(raw: Mapping[str, Any]) -> FilterNode:
    """
    Build a typed filter node from the loose dict shape
    `{id, field, operator, value, combinator, children}`.

    A node carrying a `children` list is a group, even when the list is empty;
    its field/operator/value are ignored. Any other node is a leaf and must
    supply `field` and `operator`.

    :raises ValueError: if a leaf lacks field or operator, or a combinator is unknown
    """
    node_id = str(raw.get("id") or generate_filter_id())
    children = raw.get("children")

    if isinstance(children, (list, tuple)):
        combinator = str(raw.get("combinator") or "and").lower()
        return FilterGroup(
            combinator=combinator,
            children=tuple(filter_from_dict(child) for child in children),
            id=node_id,
        )

    field_name = raw.get("field")
    operator = raw.get("operator")
    if not field_name or not operator:
        raise ValueError(f"Filter leaf '{node_id}' requires both 'field' and 'operator'")

    return FilterCondition(
        field=str(field_name),
        operator=str(operator),
        value=raw.get("value"),
        id=node_id,
    )


def and_(*children: FilterNode) -> FilterGroup:
    return FilterGroup(combinator="and", children=children)


def or_(*children: FilterNode) -> FilterGroup:
    return FilterGroup(combinator="or", children=children)
