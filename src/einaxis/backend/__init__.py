from .dispatch import (
    BACKEND_POLICY,
    BACKEND_RESOLVER,
    BackendPolicy,
    BackendProfile,
    BackendResolver,
)
from .namespace import (
    ArrayNamespaceLike,
    BackendFamily,
    derive_namespace_id,
    infer_backend_family,
)
from .runtime import (
    ArrayNamespace,
    ArrayNamespaceBinding,
    BackendArrayOps,
    bind_array_namespace,
    load_backend_module,
    resolve_backend_array_ops,
)
from .tensor import (
    AxisOperation,
    AxisTensor,
    Backend,
    PositionLength,
    add_axes,
    as_axis_tensor,
    reduce_axes,
    reshape,
    transpose,
)

__all__ = [
    "ArrayNamespace",
    "ArrayNamespaceBinding",
    "ArrayNamespaceLike",
    "AxisOperation",
    "AxisTensor",
    "Backend",
    "BackendArrayOps",
    "BackendFamily",
    "BackendPolicy",
    "BackendProfile",
    "BackendResolver",
    "BACKEND_POLICY",
    "BACKEND_RESOLVER",
    "PositionLength",
    "add_axes",
    "as_axis_tensor",
    "bind_array_namespace",
    "derive_namespace_id",
    "infer_backend_family",
    "load_backend_module",
    "reduce_axes",
    "reshape",
    "resolve_backend_array_ops",
    "transpose",
]
