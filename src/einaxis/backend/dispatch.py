import logging
from dataclasses import dataclass

from ..diagnostics import ErrorCode, ValidationError
from ..operation import Operation
from .namespace import (
    ArrayNamespaceLike,
    BackendFamily,
    infer_backend_family,
)
from .runtime import (
    ArrayNamespaceBinding,
    BackendArrayOps,
    bind_array_namespace,
    has_backend_runtime_spec,
    resolve_backend_array_ops,
)

logger = logging.getLogger(__name__)

_ZERO_LENGTH_FAMILIES = frozenset(("numpy", "torch"))
_IMPLEMENTED_OPERATIONS = frozenset(
    (Operation.MIN, Operation.MAX, Operation.SUM, Operation.MEAN)
)


@dataclass(frozen=True, slots=True)
class BackendProfile:
    """Resolved backend profile for one tensor."""

    namespace: ArrayNamespaceLike
    namespace_id: str
    backend_family: BackendFamily | None
    supports_zero_length_axes: bool


class BackendPolicy:
    """Backend capability policy shared by every axis operation."""

    def __init__(
        self,
        *,
        zero_length_families: frozenset[BackendFamily] = _ZERO_LENGTH_FAMILIES,
        implemented_operations: frozenset[Operation] = _IMPLEMENTED_OPERATIONS,
    ) -> None:
        self.zero_length_families = zero_length_families
        self.implemented_operations = implemented_operations

    def supports_zero_length_axes(self, backend_family: BackendFamily | None) -> bool:
        """Return whether one backend family accepts zero-length axes."""
        return backend_family in self.zero_length_families

    def check_operation(self, operation: Operation, /) -> None:
        """Reject reduction kinds that are declared but not implemented."""
        if operation in self.implemented_operations:
            return
        raise ValidationError(
            code=ErrorCode.UNSUPPORTED_OPERATION,
            message=(
                f"unsupported operation: {operation.value!r} reduction is declared "
                "but not implemented"
            ),
            help="use Operation.MIN, MAX, SUM or MEAN",
            related=("reduce_axes",),
            data={"operation": "reduce_axes", "reducer": operation.value},
        )


class BackendResolver:
    """Resolve backend profile and primitives from runtime tensors."""

    def __init__(self, *, policy: BackendPolicy) -> None:
        self.policy = policy

    def lookup(self, tensor: object, /, *, op_name: str) -> BackendProfile:
        """Lookup backend profile for one runtime tensor."""
        try:
            binding = bind_array_namespace(tensor)
            namespace_id = binding.namespace_id
        except Exception as exc:
            raise ValidationError(
                code=ErrorCode.BACKEND_DISPATCH_UNSUPPORTED_INPUT,
                message=(
                    "backend dispatch unsupported input: "
                    f"tensor type {type(tensor).__name__!r} is not Array API compatible"
                ),
                help="use a tensor from an Array API compatible backend family",
                related=("backend dispatch",),
                data={"operation": op_name},
            ) from exc

        backend_family = infer_backend_family(namespace_id)
        logger.debug(
            "resolved namespace %s (family %s) for %s",
            namespace_id,
            backend_family,
            op_name,
        )
        return BackendProfile(
            namespace=binding.namespace,
            namespace_id=namespace_id,
            backend_family=backend_family,
            supports_zero_length_axes=self.policy.supports_zero_length_axes(
                backend_family
            ),
        )

    def array_ops(self, profile: BackendProfile, /) -> BackendArrayOps:
        """Return engine primitives for one resolved profile.

        Known families use their native call table; everything else goes
        through the Array API namespace.
        """
        backend_family = profile.backend_family
        if has_backend_runtime_spec(backend_family):
            try:
                return resolve_backend_array_ops(backend_family)
            except (ModuleNotFoundError, ValueError):
                logger.debug(
                    "native primitives unavailable for %s, using Array API namespace",
                    backend_family,
                )
        return ArrayNamespaceBinding(namespace=profile.namespace).as_array_ops()


BACKEND_POLICY = BackendPolicy()
BACKEND_RESOLVER = BackendResolver(policy=BACKEND_POLICY)


__all__ = [
    "BACKEND_POLICY",
    "BACKEND_RESOLVER",
    "BackendPolicy",
    "BackendProfile",
    "BackendResolver",
]
