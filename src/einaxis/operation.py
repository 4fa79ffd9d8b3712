from enum import Enum


class Operation(str, Enum):
    """Operation used to collapse one axis during a reduction."""

    MIN = "min"
    MAX = "max"
    SUM = "sum"
    MEAN = "mean"
    # declared for plan compatibility; no backend implements it yet
    PROD = "prod"

    @classmethod
    def coerce(cls, value: "Operation | str") -> "Operation":
        """Normalize an `Operation` or its lowercase string name."""
        if isinstance(value, Operation):
            return value
        if not isinstance(value, str):
            raise TypeError("reduction operation must be an Operation or a string")
        try:
            return cls(value)
        except ValueError:
            names = ", ".join(repr(member.value) for member in cls)
            raise ValueError(
                f"unknown reduction operation {value!r}; expected one of {names}"
            ) from None


__all__ = ["Operation"]
