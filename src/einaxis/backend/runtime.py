from collections.abc import Callable
from dataclasses import dataclass
from functools import cache
from importlib import import_module
from importlib.util import find_spec
from types import ModuleType
from typing import Literal, Protocol, TypeGuard, runtime_checkable

from array_api_compat import array_namespace

from ..diagnostics import ErrorCode, ValidationError
from ..operation import Operation
from ..tensor_types import TensorLike
from .namespace import ArrayNamespaceLike, BackendFamily, derive_namespace_id

ReducerFn = Callable[[TensorLike, int], TensorLike]
AxisKeyword = Literal["axis", "dim"]


@dataclass(frozen=True, slots=True)
class _BackendRuntimeSpec:
    """Backend runtime callable specification."""

    module_name: str
    reshape_name: str
    permute_name: str
    expand_dims_name: str
    repeat_name: str
    reducer_name_map: dict[Operation, str]
    reducer_axis_keyword: AxisKeyword
    asarray_name: str | None


_BACKEND_RUNTIME_SPECS: dict[BackendFamily, _BackendRuntimeSpec] = {
    "numpy": _BackendRuntimeSpec(
        module_name="numpy",
        reshape_name="reshape",
        permute_name="transpose",
        expand_dims_name="expand_dims",
        repeat_name="tile",
        reducer_name_map={
            Operation.MIN: "min",
            Operation.MAX: "max",
            Operation.SUM: "sum",
            Operation.MEAN: "mean",
        },
        reducer_axis_keyword="axis",
        asarray_name="asarray",
    ),
    "torch": _BackendRuntimeSpec(
        module_name="torch",
        reshape_name="reshape",
        permute_name="permute",
        expand_dims_name="unsqueeze",
        repeat_name="repeat",
        reducer_name_map={
            Operation.MIN: "amin",
            Operation.MAX: "amax",
            Operation.SUM: "sum",
            Operation.MEAN: "mean",
        },
        reducer_axis_keyword="dim",
        asarray_name=None,
    ),
}

# Namespace methods needed when a tensor is driven through the Array API.
NAMESPACE_REQUIRED_METHODS = (
    "reshape",
    "permute_dims",
    "expand_dims",
    "broadcast_to",
    "min",
    "max",
    "sum",
    "mean",
)


@dataclass(frozen=True, slots=True)
class BackendArrayOps:
    """Engine primitives the axis algebra is written against."""

    backend_family: BackendFamily | None
    reshape: Callable[[TensorLike, tuple[int, ...]], TensorLike]
    permute: Callable[[TensorLike, tuple[int, ...]], TensorLike]
    expand_dims: Callable[[TensorLike, int], TensorLike]
    repeat: Callable[[TensorLike, tuple[int, ...]], TensorLike]
    reducers: dict[Operation, ReducerFn]

    def reduce(
        self,
        *,
        operation: Operation,
        tensor: TensorLike,
        axis: int,
    ) -> TensorLike:
        """Collapse one axis with one backend-native reducer."""
        reducer = self.reducers.get(operation)
        if reducer is None:
            raise ValidationError(
                code=ErrorCode.UNSUPPORTED_OPERATION,
                message=(
                    f"unsupported operation: {operation.value!r} reduction is not "
                    "implemented by this backend"
                ),
                help="use Operation.MIN, MAX, SUM or MEAN",
                related=("reduce_axes",),
                data={"operation": "reduce_axes", "reducer": operation.value},
            )
        return reducer(tensor, axis)


@runtime_checkable
class ArrayNamespace(Protocol):
    """Array namespace protocol required by the generic fallback."""

    __name__: str

    def reshape(self, tensor: TensorLike, shape: tuple[int, ...], /) -> TensorLike: ...

    def permute_dims(
        self, tensor: TensorLike, axes: tuple[int, ...], /
    ) -> TensorLike: ...

    def expand_dims(self, tensor: TensorLike, /, *, axis: int) -> TensorLike: ...

    def broadcast_to(
        self, tensor: TensorLike, shape: tuple[int, ...], /
    ) -> TensorLike: ...

    def min(self, tensor: TensorLike, /, *, axis: int) -> TensorLike: ...

    def max(self, tensor: TensorLike, /, *, axis: int) -> TensorLike: ...

    def sum(self, tensor: TensorLike, /, *, axis: int) -> TensorLike: ...

    def mean(self, tensor: TensorLike, /, *, axis: int) -> TensorLike: ...


def _is_array_namespace(namespace: ArrayNamespaceLike) -> TypeGuard[ArrayNamespace]:
    """Return whether namespace supports every required Array API method."""
    return all(
        callable(getattr(namespace, method_name, None))
        for method_name in NAMESPACE_REQUIRED_METHODS
    )


@dataclass(frozen=True, slots=True)
class ArrayNamespaceBinding:
    """Resolved runtime namespace with capability checks."""

    namespace: ArrayNamespaceLike

    @property
    def namespace_id(self) -> str:
        """Return stable namespace identifier."""
        return derive_namespace_id(self.namespace)

    def missing_methods(self, required_methods: tuple[str, ...]) -> tuple[str, ...]:
        """Return missing namespace methods from required method set."""
        return tuple(
            method_name
            for method_name in required_methods
            if not callable(getattr(self.namespace, method_name, None))
        )

    def as_array_ops(self) -> BackendArrayOps:
        """Bind Array API namespace methods as backend primitives."""
        xp = self.namespace
        if not _is_array_namespace(xp):
            missing = self.missing_methods(NAMESPACE_REQUIRED_METHODS)
            raise ValidationError(
                code=ErrorCode.BACKEND_REQUIRED_EXTENSION_MISSING,
                message=(
                    "backend required extension missing: namespace "
                    f"{self.namespace_id!r} lacks {', '.join(missing)}"
                ),
                help="use a backend whose namespace implements the Array API",
                related=("backend capability",),
                data={"namespace_id": self.namespace_id, "missing": len(missing)},
            )

        def repeat(tensor: TensorLike, repeats: tuple[int, ...]) -> TensorLike:
            # Only length-1 axes are repeated, so a broadcast yields the same values.
            target_shape = tuple(
                length * count for length, count in zip(tensor.shape, repeats)
            )
            return xp.broadcast_to(tensor, target_shape)

        return BackendArrayOps(
            backend_family=None,
            reshape=lambda tensor, shape: xp.reshape(tensor, shape),
            permute=lambda tensor, axes: xp.permute_dims(tensor, axes),
            expand_dims=lambda tensor, axis: xp.expand_dims(tensor, axis=axis),
            repeat=repeat,
            reducers={
                Operation.MIN: lambda tensor, axis: xp.min(tensor, axis=axis),
                Operation.MAX: lambda tensor, axis: xp.max(tensor, axis=axis),
                Operation.SUM: lambda tensor, axis: xp.sum(tensor, axis=axis),
                Operation.MEAN: lambda tensor, axis: xp.mean(tensor, axis=axis),
            },
        )


def bind_array_namespace(*tensors: TensorLike) -> ArrayNamespaceBinding:
    """Resolve Array API namespace binding from runtime tensors."""
    namespace = array_namespace(*tensors)
    return ArrayNamespaceBinding(namespace=namespace)


def has_backend_runtime_spec(backend_family: BackendFamily | None) -> bool:
    return backend_family in _BACKEND_RUNTIME_SPECS


@cache
def resolve_backend_array_ops(
    backend_family: BackendFamily,
    /,
) -> BackendArrayOps:
    """Resolve backend-native primitive callables for one family."""
    spec = _BACKEND_RUNTIME_SPECS.get(backend_family)
    if spec is None:
        raise ValueError(f"unsupported backend family: {backend_family!r}")

    backend_module = load_backend_module(backend_family)
    reducers: dict[Operation, ReducerFn] = {}
    for operation, module_reducer_name in spec.reducer_name_map.items():
        reducers[operation] = _bind_reducer_op(
            backend_module,
            module_reducer_name=module_reducer_name,
            axis_keyword=spec.reducer_axis_keyword,
            asarray_name=spec.asarray_name,
        )

    if backend_family == "torch":
        tensor_type = _resolve_module_op(backend_module, module_op_name="Tensor")
        tensor_reshape = getattr(tensor_type, spec.reshape_name)
        tensor_permute = getattr(tensor_type, spec.permute_name)
        tensor_unsqueeze = getattr(tensor_type, spec.expand_dims_name)
        tensor_repeat = getattr(tensor_type, spec.repeat_name)
        return BackendArrayOps(
            backend_family=backend_family,
            reshape=lambda tensor, shape: tensor_reshape(tensor, shape),
            permute=lambda tensor, axes: tensor_permute(tensor, axes),
            expand_dims=lambda tensor, axis: tensor_unsqueeze(tensor, axis),
            repeat=lambda tensor, repeats: tensor_repeat(tensor, repeats),
            reducers=reducers,
        )

    return BackendArrayOps(
        backend_family=backend_family,
        reshape=_bind_tensor_shape_op(
            backend_module,
            module_op_name=spec.reshape_name,
        ),
        permute=_bind_tensor_shape_op(
            backend_module,
            module_op_name=spec.permute_name,
        ),
        expand_dims=_bind_tensor_axis_op(
            backend_module,
            module_op_name=spec.expand_dims_name,
        ),
        repeat=_bind_tensor_shape_op(
            backend_module,
            module_op_name=spec.repeat_name,
        ),
        reducers=reducers,
    )


@cache
def load_backend_module(backend_family: BackendFamily) -> ModuleType:
    """Load one backend runtime module lazily and fail fast when unavailable."""
    runtime_spec = _BACKEND_RUNTIME_SPECS.get(backend_family)
    if runtime_spec is None:
        raise ValueError(f"unknown backend family: {backend_family!r}")
    module_name = runtime_spec.module_name
    if find_spec(module_name) is None:
        raise ModuleNotFoundError(
            f"backend runtime module is not installed: {module_name!r}"
        )
    try:
        return import_module(module_name)
    except ImportError as error:
        raise ModuleNotFoundError(
            f"backend runtime module import failed: {module_name!r}"
        ) from error


def _resolve_module_op(
    backend_module: ModuleType,
    /,
    *,
    module_op_name: str,
) -> Callable[..., TensorLike]:
    """Resolve one backend module callable and fail when unavailable."""
    op_candidate = getattr(backend_module, module_op_name, None)
    if not callable(op_candidate):
        raise ValueError(
            "backend runtime module callable is unavailable: "
            f"{backend_module.__name__}.{module_op_name}"
        )
    return op_candidate


def _bind_tensor_shape_op(
    backend_module: ModuleType,
    /,
    *,
    module_op_name: str,
) -> Callable[[TensorLike, tuple[int, ...]], TensorLike]:
    """Bind tensor-shape callable `(tensor, shape)`."""
    op = _resolve_module_op(
        backend_module,
        module_op_name=module_op_name,
    )
    return lambda tensor, shape, op=op: op(tensor, shape)


def _bind_tensor_axis_op(
    backend_module: ModuleType,
    /,
    *,
    module_op_name: str,
) -> Callable[[TensorLike, int], TensorLike]:
    op = _resolve_module_op(
        backend_module,
        module_op_name=module_op_name,
    )
    return lambda tensor, axis, op=op: op(tensor, axis)


def _bind_reducer_op(
    backend_module: ModuleType,
    /,
    *,
    module_reducer_name: str,
    axis_keyword: AxisKeyword,
    asarray_name: str | None,
) -> ReducerFn:
    """Bind reducer callable using backend-specific axis keyword."""
    reducer = _resolve_module_op(
        backend_module,
        module_op_name=module_reducer_name,
    )
    if asarray_name is None:
        return lambda tensor, axis, reducer=reducer: reducer(
            tensor, **{axis_keyword: axis}
        )

    # numpy reducers return scalars for rank-1 inputs
    asarray = _resolve_module_op(backend_module, module_op_name=asarray_name)
    return lambda tensor, axis, reducer=reducer: asarray(
        reducer(tensor, **{axis_keyword: axis})
    )


__all__ = [
    "ArrayNamespace",
    "ArrayNamespaceBinding",
    "BackendArrayOps",
    "NAMESPACE_REQUIRED_METHODS",
    "bind_array_namespace",
    "has_backend_runtime_spec",
    "load_backend_module",
    "resolve_backend_array_ops",
]
