from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from ..axis import (
    check_permutation,
    check_reshape,
    coerce_operation,
    normalize_reduce_axes,
    permuted_shape,
    plan_axis_insertions,
    reduced_shape,
)
from ..backend import BACKEND_POLICY, Backend, BackendPolicy
from ..operation import Operation
from ..tensor_types import Shape


class AxisStep(ABC):
    """One axis operation of a lowered rearrange plan."""

    name: str

    @abstractmethod
    def apply(self, tensor: Backend, /) -> Backend:
        """Run this step through any `Backend` value."""

    @abstractmethod
    def infer_shape(
        self,
        shape: Shape,
        /,
        *,
        policy: BackendPolicy = BACKEND_POLICY,
    ) -> Shape:
        """Return the output shape without touching tensor data."""


@dataclass(frozen=True, slots=True)
class ReshapeStep(AxisStep):
    shape: tuple[int, ...]
    name: str = "reshape"

    def __post_init__(self) -> None:
        object.__setattr__(self, "shape", tuple(self.shape))

    def apply(self, tensor: Backend, /) -> Backend:
        return tensor.reshape(self.shape)

    def infer_shape(
        self,
        shape: Shape,
        /,
        *,
        policy: BackendPolicy = BACKEND_POLICY,
    ) -> Shape:
        return check_reshape(shape, self.shape)


@dataclass(frozen=True, slots=True)
class TransposeStep(AxisStep):
    permutation: tuple[int, ...]
    name: str = "transpose"

    def __post_init__(self) -> None:
        object.__setattr__(self, "permutation", tuple(self.permutation))

    def apply(self, tensor: Backend, /) -> Backend:
        return tensor.transpose(self.permutation)

    def infer_shape(
        self,
        shape: Shape,
        /,
        *,
        policy: BackendPolicy = BACKEND_POLICY,
    ) -> Shape:
        return permuted_shape(shape, check_permutation(len(shape), self.permutation))


@dataclass(frozen=True, slots=True)
class ReduceStep(AxisStep):
    """Collapse several axes, each with its own operation."""

    axes_operations: tuple[tuple[int, Operation], ...]
    name: str = "reduce_axes"

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "axes_operations",
            tuple(
                (axis, coerce_operation(operation, axis=axis))
                for axis, operation in self.axes_operations
            ),
        )

    def apply(self, tensor: Backend, /) -> Backend:
        return tensor.reduce_axes(self.axes_operations)

    def infer_shape(
        self,
        shape: Shape,
        /,
        *,
        policy: BackendPolicy = BACKEND_POLICY,
    ) -> Shape:
        normalized = normalize_reduce_axes(len(shape), self.axes_operations)
        for _, operation in normalized:
            policy.check_operation(operation)
        return reduced_shape(shape, normalized)


@dataclass(frozen=True, slots=True)
class AddAxesStep(AxisStep):
    """Insert new axes at final positions and repeat them to length."""

    naxes: int
    pos2len: tuple[tuple[int, int], ...]
    name: str = "add_axes"

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "pos2len", tuple(tuple(pair) for pair in self.pos2len)
        )

    def apply(self, tensor: Backend, /) -> Backend:
        return tensor.add_axes(self.naxes, self.pos2len)

    def infer_shape(
        self,
        shape: Shape,
        /,
        *,
        policy: BackendPolicy = BACKEND_POLICY,
    ) -> Shape:
        return plan_axis_insertions(shape, self.naxes, self.pos2len).output_shape


def coerce_steps(steps: Sequence[object], /) -> tuple[AxisStep, ...]:
    """Validate plan steps and return them as a tuple."""
    normalized: list[AxisStep] = []
    for step in steps:
        if not isinstance(step, AxisStep):
            raise TypeError(
                f"axis plan steps must be AxisStep instances, got {type(step).__name__}"
            )
        normalized.append(step)
    return tuple(normalized)


__all__ = [
    "AddAxesStep",
    "AxisStep",
    "ReduceStep",
    "ReshapeStep",
    "TransposeStep",
    "coerce_steps",
]
