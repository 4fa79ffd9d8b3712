import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from ..axis import check_shape
from ..backend import (
    BACKEND_POLICY,
    AxisTensor,
    Backend,
    BackendPolicy,
    as_axis_tensor,
)
from ..diagnostics import AxisAlgebraError
from ..tensor_types import Shape, TensorLike
from .steps import AxisStep, coerce_steps

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AxisPlan:
    """Ordered axis operations lowered from one rearrange expression.

    A plan is all-or-nothing: the first failing step aborts the run and its
    error is re-raised with the step index and name attached.
    """

    steps: tuple[AxisStep, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", coerce_steps(self.steps))

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[AxisStep]:
        return iter(self.steps)

    def then(self, *steps: AxisStep) -> "AxisPlan":
        """Return a new plan with `steps` appended."""
        return AxisPlan(steps=(*self.steps, *steps))

    def run(self, tensor: Backend | TensorLike, /) -> Backend:
        """Apply every step in order and return the resulting tensor.

        `Backend` values run as they are; engine tensors are wrapped in
        `AxisTensor` first.
        """
        current = tensor if isinstance(tensor, Backend) else as_axis_tensor(tensor)
        for index, step in enumerate(self.steps):
            logger.debug(
                "axis plan step %d (%s) on shape %s", index, step.name, current.shape
            )
            try:
                current = step.apply(current)
            except AxisAlgebraError as error:
                raise error.at_step(index, step.name) from error
        return current

    def output_shape(
        self,
        input_shape: Sequence[int],
        /,
        *,
        policy: BackendPolicy = BACKEND_POLICY,
    ) -> Shape:
        """Infer the result shape of `run` for an input of `input_shape`.

        Pass the `policy` of the resolver the tensor will run under.
        """
        shape = check_shape(input_shape, allow_zero_length=True, operation="axis_plan")
        for index, step in enumerate(self.steps):
            try:
                shape = step.infer_shape(shape, policy=policy)
            except AxisAlgebraError as error:
                raise error.at_step(index, step.name) from error
        return shape


def execute_plan(
    tensor: Backend | TensorLike,
    steps: Sequence[AxisStep],
    /,
) -> Backend | TensorLike:
    """Run `steps` and unwrap `AxisTensor` results to the engine tensor."""
    result = AxisPlan(steps=tuple(steps)).run(tensor)
    if isinstance(result, AxisTensor):
        return result.data
    return result


__all__ = ["AxisPlan", "execute_plan"]
