from typing import Protocol, TypeAlias, runtime_checkable

Shape: TypeAlias = tuple[int, ...]


@runtime_checkable
class TensorLike(Protocol):
    """Engine tensor protocol shared by the axis algebra and backend dispatch."""

    @property
    def shape(self) -> tuple[int, ...]:
        """Tensor shape."""
        ...
