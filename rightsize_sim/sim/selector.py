# rightsize_sim/sim/selector.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..model.entities import LabelSelector, SelectorRequirement
from .errors import ConfigurationError


_OPERATORS = ("In", "NotIn", "Exists", "DoesNotExist")


def _validate_requirement(req: SelectorRequirement) -> None:
    if not req.key:
        raise ConfigurationError("label selector requirement has an empty key")
    if req.operator not in _OPERATORS:
        raise ConfigurationError(
            f"label selector operator {req.operator!r} for key {req.key!r} is not supported"
        )
    if req.operator in ("In", "NotIn") and not req.values:
        raise ConfigurationError(
            f"label selector operator {req.operator} for key {req.key!r} requires values"
        )
    if req.operator in ("Exists", "DoesNotExist") and req.values:
        raise ConfigurationError(
            f"label selector operator {req.operator} for key {req.key!r} must not have values"
        )


def validate_node_requirement(req: SelectorRequirement) -> None:
    """Выражение nodeSelectorTerm: операторы label selector'а плюс Gt/Lt с одним целым."""
    if req.operator not in ("Gt", "Lt"):
        _validate_requirement(req)
        return
    if not req.key:
        raise ConfigurationError("node affinity requirement has an empty key")
    if len(req.values) != 1:
        raise ConfigurationError(f"node affinity operator {req.operator} for key {req.key!r} needs one value")
    try:
        int(req.values[0])
    except ValueError:
        raise ConfigurationError(
            f"node affinity operator {req.operator} for key {req.key!r} has a non-integer value"
        ) from None


def _requirement_matches(req: SelectorRequirement, labels: Dict[str, str]) -> bool:
    if req.operator == "In":
        return req.key in labels and labels[req.key] in req.values
    if req.operator == "NotIn":
        return req.key not in labels or labels[req.key] not in req.values
    if req.operator == "Exists":
        return req.key in labels
    return req.key not in labels


@dataclass(frozen=True)
class Selector:
    """Проверенный селектор. matchLabels и matchExpressions объединяются по AND."""
    match_labels: Dict[str, str]
    requirements: List[SelectorRequirement]
    matches_nothing: bool = False

    def matches(self, labels: Optional[Dict[str, str]]) -> bool:
        if self.matches_nothing:
            return False
        labels = labels or {}
        for key, value in self.match_labels.items():
            if labels.get(key) != value:
                return False
        return all(_requirement_matches(r, labels) for r in self.requirements)


NOTHING = Selector(match_labels={}, requirements=[], matches_nothing=True)


def compile_selector(selector: Optional[LabelSelector]) -> Selector:
    """
    Преобразует LabelSelector в Selector.

    None (селектор не задан) не матчит ничего, пустой селектор матчит всё.
    Некорректные выражения -> ConfigurationError.
    """
    if selector is None:
        return NOTHING
    for req in selector.match_expressions:
        _validate_requirement(req)
    return Selector(
        match_labels=dict(selector.match_labels),
        requirements=list(selector.match_expressions),
    )


def count_matching(selector: Selector, pods_labels: Iterable[Dict[str, str]]) -> int:
    return sum(1 for labels in pods_labels if selector.matches(labels))


def any_matching(selector: Selector, pods_labels: Iterable[Dict[str, str]]) -> bool:
    return any(selector.matches(labels) for labels in pods_labels)
