from .algebra import (
    AxisInsertionPlan,
    check_permutation,
    check_reshape,
    check_shape,
    coerce_operation,
    inverse_permutation,
    normalize_reduce_axes,
    permuted_shape,
    plan_axis_insertions,
    reduced_shape,
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
