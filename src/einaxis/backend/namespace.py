from typing import Protocol, TypeAlias

BackendFamily: TypeAlias = str

_BACKEND_FAMILY_CANONICAL: dict[str, BackendFamily] = {
    "numpy": "numpy",
    "torch": "torch",
    "jax": "jax",
    "cupy": "cupy",
    "dask": "dask",
    "mlx": "mlx.core",
}


class ArrayNamespaceLike(Protocol):
    """Minimal Array API namespace protocol."""

    __name__: str


def derive_namespace_id(namespace: ArrayNamespaceLike) -> str:
    """Derive stable namespace identifier for modules and class-like namespaces."""
    namespace_name = getattr(namespace, "__name__", None)
    if not isinstance(namespace_name, str):
        raise TypeError("array namespace must define string __name__")

    stripped_name = namespace_name.strip()
    if not stripped_name:
        raise TypeError("array namespace __name__ cannot be empty")

    if "." in stripped_name:
        return stripped_name

    namespace_module = getattr(namespace, "__module__", None)
    if not isinstance(namespace_module, str) or not namespace_module.strip():
        return stripped_name
    return f"{namespace_module.strip()}.{stripped_name}"


def infer_backend_family(namespace_id: str) -> BackendFamily | None:
    """Infer canonical backend family from namespace identifier."""
    normalized_namespace_id = namespace_id.removeprefix("array_api_compat.")
    candidate = normalized_namespace_id.split(".")[0]
    return _BACKEND_FAMILY_CANONICAL.get(candidate)


__all__ = [
    "ArrayNamespaceLike",
    "BackendFamily",
    "derive_namespace_id",
    "infer_backend_family",
]
