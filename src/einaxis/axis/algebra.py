"""Pure shape algebra behind the tensor operations.

Every function here works on shapes only and never touches tensor data, so the
same checks back both eager execution and plan shape inference.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from math import prod
from numbers import Integral

from ..diagnostics import ErrorCode, ValidationError
from ..operation import Operation
from ..tensor_types import Shape


@dataclass(frozen=True, slots=True)
class AxisInsertionPlan:
    """Validated `add_axes` request."""

    insert_positions: tuple[int, ...]
    repeats: tuple[int, ...]
    output_shape: Shape


def _as_index(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, Integral):
        return None
    return int(value)


def check_shape(
    shape: Iterable[object],
    /,
    *,
    allow_zero_length: bool,
    operation: str,
) -> Shape:
    """Validate one shape and return it as a tuple of ints."""
    normalized: list[int] = []
    for axis, raw_length in enumerate(shape):
        length = _as_index(raw_length)
        if length is None or length < 0:
            raise ValidationError(
                code=ErrorCode.SHAPE_MISMATCH,
                message=(
                    f"shape mismatch: axis {axis} length {raw_length!r} "
                    "is not a non-negative integer"
                ),
                help="use non-negative integer axis lengths",
                related=(f"{operation} shape",),
                data={"operation": operation, "axis": axis},
            )
        if length == 0 and not allow_zero_length:
            raise ValidationError(
                code=ErrorCode.SHAPE_MISMATCH,
                message=(
                    f"shape mismatch: axis {axis} has zero length, which the "
                    "backend does not support"
                ),
                help="use a backend family that supports zero-length axes",
                related=(f"{operation} shape",),
                data={"operation": operation, "axis": axis},
            )
        normalized.append(length)
    return tuple(normalized)


def check_reshape(
    source_shape: Shape,
    target_shape: Iterable[object],
    /,
    *,
    allow_zero_length: bool = True,
) -> Shape:
    """Validate a reshape request and return the normalized target shape."""
    target = check_shape(
        target_shape,
        allow_zero_length=allow_zero_length,
        operation="reshape",
    )
    source_numel = prod(source_shape)
    target_numel = prod(target)
    if source_numel != target_numel:
        raise ValidationError(
            code=ErrorCode.SHAPE_MISMATCH,
            message=(
                f"shape mismatch: cannot reshape {source_shape} "
                f"({source_numel} elements) to {target} ({target_numel} elements)"
            ),
            help="choose a target shape with the same element count",
            related=("reshape",),
            data={
                "operation": "reshape",
                "source_numel": source_numel,
                "target_numel": target_numel,
            },
        )
    return target


def check_permutation(rank: int, permutation: Iterable[object], /) -> tuple[int, ...]:
    """Validate that `permutation` is a bijection over `range(rank)`."""
    requested = tuple(permutation)
    axes = tuple(_as_index(axis) for axis in requested)
    if (
        len(axes) != rank
        or any(axis is None for axis in axes)
        or sorted(axes) != list(range(rank))  # type: ignore[type-var]
    ):
        raise ValidationError(
            code=ErrorCode.INVALID_PERMUTATION,
            message=(
                f"invalid permutation: {requested!r} is not a permutation "
                f"of axes 0..{rank - 1} for a rank-{rank} tensor"
            ),
            help="list every axis index exactly once",
            related=("transpose",),
            data={"operation": "transpose", "rank": rank},
        )
    return axes  # type: ignore[return-value]


def inverse_permutation(permutation: Sequence[int], /) -> tuple[int, ...]:
    """Return the permutation undoing `permutation`."""
    inverse = [0] * len(permutation)
    for target_axis, source_axis in enumerate(permutation):
        inverse[source_axis] = target_axis
    return tuple(inverse)


def permuted_shape(shape: Shape, permutation: Sequence[int], /) -> Shape:
    return tuple(shape[axis] for axis in permutation)


def _invalid_axis(
    message: str,
    *,
    operation: str,
    data: dict[str, str | int | bool],
    help: str,
) -> ValidationError:
    return ValidationError(
        code=ErrorCode.INVALID_AXIS,
        message=f"invalid axis: {message}",
        help=help,
        related=(operation,),
        data={"operation": operation, **data},
    )


def coerce_operation(
    operation: Operation | str,
    /,
    *,
    axis: object = None,
) -> Operation:
    """Normalize one reduction operation, rejecting unknown names."""
    try:
        return Operation.coerce(operation)
    except ValueError as error:
        data: dict[str, str | int | bool] = {"operation": "reduce_axes"}
        index = _as_index(axis)
        if index is not None:
            data["axis"] = index
        raise ValidationError(
            code=ErrorCode.UNSUPPORTED_OPERATION,
            message=f"unsupported operation: {error}",
            help="use Operation.MIN, MAX, SUM or MEAN",
            related=("reduce_axes",),
            data=data,
        ) from error


def normalize_reduce_axes(
    rank: int,
    axes_operations: Iterable[tuple[object, Operation | str]],
    /,
) -> tuple[tuple[int, Operation], ...]:
    """Validate reduce pairs and return them sorted ascending by axis.

    Callers apply the pairs in reverse order. Dropping axis `k` shifts every
    higher axis down by one, so highest-first keeps each pending index valid.
    """
    pairs: list[tuple[int, Operation]] = []
    seen: set[int] = set()
    for raw_axis, raw_operation in axes_operations:
        axis = _as_index(raw_axis)
        if axis is None or not 0 <= axis < rank:
            raise _invalid_axis(
                f"axis {raw_axis!r} is out of range for a rank-{rank} tensor",
                operation="reduce_axes",
                data={"rank": rank},
                help=f"use axis indices in [0, {rank})",
            )
        if axis in seen:
            raise _invalid_axis(
                f"axis {axis} is reduced more than once in one call",
                operation="reduce_axes",
                data={"axis": axis},
                help="name each axis at most once per reduce_axes call",
            )
        seen.add(axis)
        pairs.append((axis, coerce_operation(raw_operation, axis=axis)))
    pairs.sort(key=lambda pair: pair[0])
    return tuple(pairs)


def reduced_shape(
    shape: Shape,
    axes_operations: Sequence[tuple[int, Operation]],
    /,
) -> Shape:
    dropped = {axis for axis, _ in axes_operations}
    return tuple(length for axis, length in enumerate(shape) if axis not in dropped)


def plan_axis_insertions(
    shape: Shape,
    target_rank: object,
    position_lengths: Iterable[tuple[object, object]],
    /,
    *,
    allow_zero_length: bool = True,
) -> AxisInsertionPlan:
    """Validate an `add_axes` request.

    Positions are final-rank axis numbers. Insertions are ordered by ascending
    position, which makes each position valid in the numbering reached after
    the insertions before it.
    """
    naxes = _as_index(target_rank)
    if naxes is None or naxes < 0:
        raise ValidationError(
            code=ErrorCode.RANK_MISMATCH,
            message=f"rank mismatch: target rank {target_rank!r} is not a valid rank",
            help="pass the non-negative rank of the result",
            related=("add_axes",),
            data={"operation": "add_axes"},
        )

    repeats = [1] * naxes
    inserted: dict[int, int] = {}
    for raw_position, raw_length in position_lengths:
        position = _as_index(raw_position)
        if position is None or not 0 <= position < naxes:
            raise _invalid_axis(
                f"insert position {raw_position!r} is out of range for "
                f"target rank {naxes}",
                operation="add_axes",
                data={"target_rank": naxes},
                help=f"use insert positions in [0, {naxes})",
            )
        if position in inserted:
            raise _invalid_axis(
                f"insert position {position} is requested more than once",
                operation="add_axes",
                data={"axis": position},
                help="insert at most one new axis per position",
            )
        length = _as_index(raw_length)
        if length is None or length < 0:
            raise _invalid_axis(
                f"new axis at position {position} has invalid length {raw_length!r}",
                operation="add_axes",
                data={"axis": position},
                help="use non-negative integer lengths for new axes",
            )
        inserted[position] = length
        repeats[position] = length

    if len(shape) + len(inserted) != naxes:
        raise ValidationError(
            code=ErrorCode.RANK_MISMATCH,
            message=(
                f"rank mismatch: inserting {len(inserted)} axes into a "
                f"rank-{len(shape)} tensor cannot produce rank {naxes}"
            ),
            help="target rank must equal source rank plus the number of new axes",
            related=("add_axes",),
            data={
                "operation": "add_axes",
                "source_rank": len(shape),
                "inserted": len(inserted),
                "target_rank": naxes,
            },
        )

    source_lengths = iter(shape)
    output_shape = tuple(
        inserted[axis] if axis in inserted else next(source_lengths)
        for axis in range(naxes)
    )
    check_shape(
        output_shape,
        allow_zero_length=allow_zero_length,
        operation="add_axes",
    )
    return AxisInsertionPlan(
        insert_positions=tuple(sorted(inserted)),
        repeats=tuple(repeats),
        output_shape=output_shape,
    )


__all__ = [
    "AxisInsertionPlan",
    "check_permutation",
    "check_reshape",
    "check_shape",
    "coerce_operation",
    "inverse_permutation",
    "normalize_reduce_axes",
    "permuted_shape",
    "plan_axis_insertions",
    "reduced_shape",
]
