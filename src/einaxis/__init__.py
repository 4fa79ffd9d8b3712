from .backend import (
    AxisTensor,
    Backend,
    add_axes,
    as_axis_tensor,
    reduce_axes,
    reshape,
    transpose,
)
from .diagnostics import AxisAlgebraError, ErrorCode, ExecutionError, ValidationError
from .operation import Operation
from .plan import (
    AddAxesStep,
    AxisPlan,
    AxisStep,
    ReduceStep,
    ReshapeStep,
    TransposeStep,
    execute_plan,
)
from .tensor_types import Shape, TensorLike

__all__ = [
    "AddAxesStep",
    "AxisAlgebraError",
    "AxisPlan",
    "AxisStep",
    "AxisTensor",
    "Backend",
    "ErrorCode",
    "ExecutionError",
    "Operation",
    "ReduceStep",
    "ReshapeStep",
    "Shape",
    "TensorLike",
    "TransposeStep",
    "ValidationError",
    "add_axes",
    "as_axis_tensor",
    "execute_plan",
    "reduce_axes",
    "reshape",
    "transpose",
]
