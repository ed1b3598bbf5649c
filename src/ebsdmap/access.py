# src/ebsdmap/access.py
from __future__ import annotations

from typing import Sequence, Tuple, Union

from .aggregate import GrainSummary
from .points import PointRecord

__all__ = [
    "POINT_FIELDS",
    "AVG_FIELDS",
    "FieldFunctor",
    "AttributeFunctor",
    "EulerAngleFunctor",
    "PositionFunctor",
    "CustomColumnFunctor",
    "point_field_functor",
    "avg_field_functor",
]

Record = Union[PointRecord, GrainSummary]

_EULER = ("phi1", "Phi", "phi2")
_AXES = ("x", "y", "z")

POINT_FIELDS: Tuple[str, ...] = _EULER + ("symmetry", "feature_id", "phase") + _AXES
AVG_FIELDS: Tuple[str, ...] = POINT_FIELDS + ("local_id", "global_id", "n")


class FieldFunctor:
    """Extracts one numeric value from a PointRecord or GrainSummary."""

    def __init__(self, name: str):
        self.name = name

    def __call__(self, record: Record) -> float:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class AttributeFunctor(FieldFunctor):
    def __call__(self, record: Record) -> float:
        return getattr(record, self.name)


class EulerAngleFunctor(FieldFunctor):
    def __init__(self, name: str, component: int):
        super().__init__(name)
        self.component = component

    def __call__(self, record: Record) -> float:
        return record.euler[self.component]


class PositionFunctor(FieldFunctor):
    def __init__(self, name: str, axis: int):
        super().__init__(name)
        self.axis = axis

    def __call__(self, record: Record) -> float:
        return record.position[self.axis]


class CustomColumnFunctor(FieldFunctor):
    def __init__(self, name: str, column: int):
        super().__init__(name)
        self.column = column

    def __call__(self, record: Record) -> float:
        return record.custom[self.column]


def _make(name: str, allowed: Sequence[str], custom_names: Sequence[str]) -> FieldFunctor:
    if name in _EULER:
        return EulerAngleFunctor(name, _EULER.index(name))
    if name in _AXES:
        return PositionFunctor(name, _AXES.index(name))
    if name in allowed:
        return AttributeFunctor(name)
    if name in custom_names:
        return CustomColumnFunctor(name, list(custom_names).index(name))
    if name.startswith("custom") and name[6:].isdigit():
        k = int(name[6:])
        if k < len(custom_names):
            return CustomColumnFunctor(name, k)
    known = list(allowed) + [c for c in custom_names if c not in allowed]
    raise ValueError(f"Unknown field '{name}'. Available fields: {', '.join(known)}.")


def point_field_functor(name: str, custom_names: Sequence[str] = ()) -> FieldFunctor:
    """Functor reading field `name` from a PointRecord; unknown names raise ValueError here."""
    return _make(str(name), POINT_FIELDS, custom_names)


def avg_field_functor(name: str, custom_names: Sequence[str] = ()) -> FieldFunctor:
    """Functor reading field `name` from a GrainSummary; adds local_id, global_id and n."""
    return _make(str(name), AVG_FIELDS, custom_names)
