from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from math import prod
from typing import Protocol, TypeVar, runtime_checkable

from ..axis import (
    check_permutation,
    check_reshape,
    normalize_reduce_axes,
    plan_axis_insertions,
)
from ..diagnostics import AxisAlgebraError, ErrorCode, ExecutionError
from ..operation import Operation
from ..tensor_types import Shape, TensorLike
from .dispatch import BACKEND_RESOLVER, BackendProfile, BackendResolver
from .runtime import BackendArrayOps

BackendT = TypeVar("BackendT", bound="Backend")
AxisOperation = tuple[int, Operation | str]
PositionLength = tuple[int, int]


@runtime_checkable
class Backend(Protocol):
    """Axis-algebra capability a tensor type offers to rearrange plans.

    Every method returns a new value and leaves its receiver untouched.
    """

    @property
    def shape(self) -> Shape:
        """Axis lengths, outermost first."""
        ...

    def reshape(self: BackendT, shape: Sequence[int], /) -> BackendT:
        """Reinterpret the data under `shape`; element count must match."""
        ...

    def transpose(self: BackendT, axes: Sequence[int], /) -> BackendT:
        """Move input axis `axes[i]` to output position `i`."""
        ...

    def reduce_axes(
        self: BackendT,
        axes_operations: Iterable[AxisOperation],
        /,
    ) -> BackendT:
        """Collapse each named axis with its paired operation."""
        ...

    def add_axes(
        self: BackendT,
        naxes: int,
        pos2len: Iterable[PositionLength],
        /,
    ) -> BackendT:
        """Insert new axes at final positions and repeat them to length."""
        ...


@dataclass(frozen=True, slots=True, eq=False)
class AxisTensor:
    """Immutable engine tensor handle implementing `Backend`."""

    data: TensorLike
    resolver: BackendResolver = field(default=BACKEND_RESOLVER, repr=False)
    profile: BackendProfile | None = field(default=None, repr=False)
    ops: BackendArrayOps | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.data, AxisTensor):
            raise TypeError("AxisTensor cannot wrap another AxisTensor")
        if self.profile is None:
            profile = self.resolver.lookup(self.data, op_name="axis_tensor")
            object.__setattr__(self, "profile", profile)
        if self.ops is None:
            object.__setattr__(self, "ops", self.resolver.array_ops(self.profile))

    @property
    def shape(self) -> Shape:
        return tuple(int(length) for length in self.data.shape)

    @property
    def rank(self) -> int:
        return len(self.data.shape)

    @property
    def numel(self) -> int:
        return prod(self.shape)

    def _allow_zero_length(self) -> bool:
        profile = self.profile
        return profile is not None and profile.supports_zero_length_axes

    def _array_ops(self) -> BackendArrayOps:
        ops = self.ops
        if ops is None:
            raise RuntimeError("AxisTensor backend primitives are not resolved")
        return ops

    def _derive(self, data: TensorLike) -> "AxisTensor":
        return AxisTensor(
            data=data,
            resolver=self.resolver,
            profile=self.profile,
            ops=self.ops,
        )

    def _call(
        self,
        op_name: str,
        primitive: Callable[..., TensorLike],
        /,
        *args: object,
        **kwargs: object,
    ) -> TensorLike:
        """Run one engine primitive and normalize engine failures."""
        try:
            return primitive(*args, **kwargs)
        except AxisAlgebraError:
            raise
        except Exception as error:
            raise ExecutionError(
                code=ErrorCode.BACKEND_PRIMITIVE_FAILED,
                message=f"backend primitive failed during {op_name}: {error}",
                help=(
                    "ensure the backend supports the requested operation on this "
                    "tensor dtype and layout"
                ),
                related=("backend execution",),
                data={"operation": op_name},
            ) from error

    def reshape(self, shape: Sequence[int], /) -> "AxisTensor":
        target_shape = check_reshape(
            self.shape,
            shape,
            allow_zero_length=self._allow_zero_length(),
        )
        return self._derive(
            self._call("reshape", self._array_ops().reshape, self.data, target_shape)
        )

    def transpose(self, axes: Sequence[int], /) -> "AxisTensor":
        permutation = check_permutation(self.rank, axes)
        if permutation == tuple(range(self.rank)):
            return self._derive(self.data)
        return self._derive(
            self._call("transpose", self._array_ops().permute, self.data, permutation)
        )

    def reduce_axes(
        self,
        axes_operations: Iterable[AxisOperation],
        /,
    ) -> "AxisTensor":
        normalized = normalize_reduce_axes(self.rank, axes_operations)
        for _, operation in normalized:
            self.resolver.policy.check_operation(operation)

        ops = self._array_ops()
        output = self.data
        for axis, operation in reversed(normalized):
            output = self._call(
                "reduce_axes",
                ops.reduce,
                operation=operation,
                tensor=output,
                axis=axis,
            )
        return self._derive(output)

    def add_axes(
        self,
        naxes: int,
        pos2len: Iterable[PositionLength],
        /,
    ) -> "AxisTensor":
        insertion = plan_axis_insertions(
            self.shape,
            naxes,
            pos2len,
            allow_zero_length=self._allow_zero_length(),
        )
        ops = self._array_ops()
        output = self.data
        for position in insertion.insert_positions:
            output = self._call("add_axes", ops.expand_dims, output, position)
        return self._derive(self._call("add_axes", ops.repeat, output, insertion.repeats))


def as_axis_tensor(
    tensor: AxisTensor | TensorLike,
    /,
    *,
    resolver: BackendResolver = BACKEND_RESOLVER,
) -> AxisTensor:
    """Wrap an engine tensor, passing `AxisTensor` values through."""
    if isinstance(tensor, AxisTensor):
        return tensor
    return AxisTensor(data=tensor, resolver=resolver)


def reshape(tensor: AxisTensor | TensorLike, shape: Sequence[int], /) -> TensorLike:
    return as_axis_tensor(tensor).reshape(shape).data


def transpose(tensor: AxisTensor | TensorLike, axes: Sequence[int], /) -> TensorLike:
    return as_axis_tensor(tensor).transpose(axes).data


def reduce_axes(
    tensor: AxisTensor | TensorLike,
    axes_operations: Iterable[AxisOperation],
    /,
) -> TensorLike:
    return as_axis_tensor(tensor).reduce_axes(axes_operations).data


def add_axes(
    tensor: AxisTensor | TensorLike,
    naxes: int,
    pos2len: Iterable[PositionLength],
    /,
) -> TensorLike:
    return as_axis_tensor(tensor).add_axes(naxes, pos2len).data


__all__ = [
    "AxisOperation",
    "AxisTensor",
    "Backend",
    "PositionLength",
    "add_axes",
    "as_axis_tensor",
    "reduce_axes",
    "reshape",
    "transpose",
]
