from .executor import AxisPlan, execute_plan
from .steps import AddAxesStep, AxisStep, ReduceStep, ReshapeStep, TransposeStep

__all__ = [
    "AddAxesStep",
    "AxisPlan",
    "AxisStep",
    "ReduceStep",
    "ReshapeStep",
    "TransposeStep",
    "execute_plan",
]
