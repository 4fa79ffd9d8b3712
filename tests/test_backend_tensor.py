from itertools import permutations, product

import numpy as np
import pytest

from einaxis import (
    AxisTensor,
    Backend,
    ExecutionError,
    Operation,
    ValidationError,
    add_axes,
    reduce_axes,
    reshape,
    transpose,
)
from einaxis.backend import BackendArrayOps, BackendPolicy, BackendResolver

REDUCE_INPUT = [
    0.66984287, 0.52894678, 0.85415958, 0.17721198, 0.81804799, 0.80991797,
    0.64868822, 0.96697902, 0.08047191, 0.46024353, 0.21955009, 0.31731976,
    0.05446258, 0.39454557, 0.40949016, 0.21366165, 0.2357463, 0.93699481,
    0.64522596, 0.4383618, 0.54871827, 0.87823442, 0.01261184, 0.90636503,
]  # fmt: skip

TRANSPOSE_EXPECTED = [
    0, 20, 40, 5, 25, 45, 10, 30, 50, 15, 35, 55, 60, 80, 100, 65, 85, 105, 70,
    90, 110, 75, 95, 115, 1, 21, 41, 6, 26, 46, 11, 31, 51, 16, 36, 56, 61, 81,
    101, 66, 86, 106, 71, 91, 111, 76, 96, 116, 2, 22, 42, 7, 27, 47, 12, 32, 52,
    17, 37, 57, 62, 82, 102, 67, 87, 107, 72, 92, 112, 77, 97, 117, 3, 23, 43, 8,
    28, 48, 13, 33, 53, 18, 38, 58, 63, 83, 103, 68, 88, 108, 73, 93, 113, 78, 98,
    118, 4, 24, 44, 9, 29, 49, 14, 34, 54, 19, 39, 59, 64, 84, 104, 69, 89, 109,
    74, 94, 114, 79, 99, 119,
]  # fmt: skip


def test_axis_tensor_implements_backend_capability() -> None:
    tensor = AxisTensor(np.arange(6).reshape(2, 3))

    assert isinstance(tensor, Backend)
    assert tensor.shape == (2, 3)
    assert tensor.rank == 2
    assert tensor.numel == 6
    assert tensor.profile is not None
    assert tensor.profile.backend_family == "numpy"


def test_axis_tensor_rejects_nested_wrapping() -> None:
    tensor = AxisTensor(np.arange(6))

    with pytest.raises(TypeError):
        AxisTensor(tensor)  # type: ignore[arg-type]


def test_reduce_min_over_leading_axis_matches_literal() -> None:
    tensor = AxisTensor(np.array(REDUCE_INPUT).reshape(4, 2, 3))

    reduced = tensor.reduce_axes([(0, Operation.MIN)])

    assert reduced.shape == (2, 3)
    np.testing.assert_allclose(
        reduced.data,
        np.array(
            [0.05446258, 0.39454557, 0.08047191, 0.17721198, 0.01261184, 0.31731976]
        ).reshape(2, 3),
    )


def test_transpose_rank_four_matches_index_mapping() -> None:
    source = np.arange(2 * 3 * 4 * 5).reshape(2, 3, 4, 5)
    permutation = (3, 0, 2, 1)

    output = AxisTensor(source).transpose(permutation)

    assert output.shape == (5, 2, 4, 3)
    for index in product(*(range(length) for length in output.shape)):
        source_index = [0, 0, 0, 0]
        for output_axis, source_axis in enumerate(permutation):
            source_index[source_axis] = index[output_axis]
        assert output.data[index] == source[tuple(source_index)]
    np.testing.assert_array_equal(
        output.data, np.array(TRANSPOSE_EXPECTED).reshape(5, 2, 4, 3)
    )


def test_add_axes_tiles_source_block() -> None:
    source = np.arange(6, dtype=np.float32).reshape(1, 2, 3)

    output = AxisTensor(source).add_axes(5, [(0, 5), (3, 3)])

    assert output.shape == (5, 1, 2, 3, 3)
    expected = np.array([0, 1, 2, 0, 1, 2, 0, 1, 2, 3, 4, 5, 3, 4, 5, 3, 4, 5] * 5)
    np.testing.assert_array_equal(output.data, expected.reshape(5, 1, 2, 3, 3))
    for a, j, r, k in product(range(5), range(2), range(3), range(3)):
        assert output.data[a, 0, j, r, k] == source[0, j, k]


def test_add_axes_is_independent_of_pair_order() -> None:
    source = np.arange(6).reshape(1, 2, 3)

    forward = AxisTensor(source).add_axes(5, [(0, 5), (3, 3)])
    backward = AxisTensor(source).add_axes(5, [(3, 3), (0, 5)])

    np.testing.assert_array_equal(forward.data, backward.data)


def test_add_axes_repeats_without_distortion() -> None:
    source = np.arange(4).reshape(4)

    output = AxisTensor(source).add_axes(3, [(1, 2), (2, 3)])

    assert output.shape == (4, 2, 3)
    for i, j, k in product(range(4), range(2), range(3)):
        assert output.data[i, j, k] == source[i]


def test_add_axes_rejects_position_beyond_target_rank() -> None:
    with pytest.raises(ValidationError) as error:
        AxisTensor(np.zeros((2, 3))).add_axes(3, [(3, 2)])

    assert error.value.code == "invalid_axis"


def test_add_axes_rejects_rank_mismatch() -> None:
    with pytest.raises(ValidationError) as error:
        AxisTensor(np.zeros((2, 3))).add_axes(4, [(0, 2)])

    assert error.value.code == "rank_mismatch"


def test_reduce_prod_is_unsupported_and_leaves_source_usable() -> None:
    source = np.array(REDUCE_INPUT).reshape(4, 2, 3)
    snapshot = source.copy()
    tensor = AxisTensor(source)

    with pytest.raises(ValidationError) as error:
        tensor.reduce_axes([(1, Operation.SUM), (0, Operation.PROD)])

    assert error.value.code == "unsupported_operation"
    assert error.value.data["reducer"] == "prod"
    np.testing.assert_array_equal(source, snapshot)
    assert tensor.reduce_axes([(0, "max")]).shape == (2, 3)


def test_transpose_rejects_duplicate_axis() -> None:
    with pytest.raises(ValidationError) as error:
        AxisTensor(np.zeros((2, 3, 4))).transpose([0, 0, 1])

    assert error.value.code == "invalid_permutation"


def test_transpose_roundtrip_restores_values() -> None:
    source = np.arange(2 * 3 * 4 * 5).reshape(2, 3, 4, 5)
    tensor = AxisTensor(source)

    for permutation in permutations(range(4)):
        inverse = [0] * 4
        for target_axis, source_axis in enumerate(permutation):
            inverse[source_axis] = target_axis
        restored = tensor.transpose(permutation).transpose(inverse)
        assert restored.shape == source.shape
        np.testing.assert_array_equal(restored.data, source)


def test_identity_transpose_returns_equal_values() -> None:
    source = np.arange(6).reshape(2, 3)

    output = AxisTensor(source).transpose((0, 1))

    np.testing.assert_array_equal(output.data, source)


def test_reshape_composes() -> None:
    source = np.arange(24)
    tensor = AxisTensor(source)

    chained = tensor.reshape((4, 6)).reshape((2, 3, 4))
    direct = tensor.reshape((2, 3, 4))

    np.testing.assert_array_equal(chained.data, direct.data)


def test_reshape_rejects_element_count_change() -> None:
    with pytest.raises(ValidationError) as error:
        AxisTensor(np.arange(24)).reshape((5, 5))

    assert error.value.code == "shape_mismatch"


def test_reshape_does_not_mutate_source() -> None:
    source = np.arange(6)
    tensor = AxisTensor(source)

    _ = tensor.reshape((2, 3))

    assert source.shape == (6,)
    assert tensor.shape == (6,)


@pytest.mark.parametrize("rank", [1, 2, 3, 4])
def test_reduce_sum_matches_numpy(rank: int) -> None:
    rng = np.random.RandomState(7)
    shape = tuple(int(length) for length in rng.randint(1, 5, size=rank))
    source = rng.standard_normal(shape)

    for axis in range(rank):
        reduced = AxisTensor(source).reduce_axes([(axis, Operation.SUM)])
        assert reduced.shape == shape[:axis] + shape[axis + 1 :]
        np.testing.assert_allclose(reduced.data, np.sum(source, axis=axis))


def test_reduce_mean_and_max_match_numpy() -> None:
    source = np.arange(2 * 3 * 4, dtype=np.float64).reshape(2, 3, 4)

    reduced = AxisTensor(source).reduce_axes([(2, "mean"), (0, "max")])

    np.testing.assert_allclose(reduced.data, np.max(np.mean(source, axis=2), axis=0))


def test_reduce_min_is_independent_of_pair_order() -> None:
    source = np.random.RandomState(3).standard_normal((3, 4, 5))

    forward = AxisTensor(source).reduce_axes([(0, Operation.MIN), (2, Operation.MIN)])
    backward = AxisTensor(source).reduce_axes([(2, Operation.MIN), (0, Operation.MIN)])

    assert forward.shape == (4,)
    np.testing.assert_array_equal(forward.data, backward.data)
    np.testing.assert_array_equal(forward.data, source.min(axis=(0, 2)))


def test_reduce_all_axes_yields_rank_zero_array() -> None:
    source = np.arange(6).reshape(2, 3)

    reduced = AxisTensor(source).reduce_axes([(0, "sum"), (1, "sum")])

    assert reduced.shape == ()
    assert isinstance(reduced.data, np.ndarray)
    assert int(reduced.data) == 15


def test_reduce_without_pairs_keeps_values() -> None:
    source = np.arange(6).reshape(2, 3)

    reduced = AxisTensor(source).reduce_axes([])

    np.testing.assert_array_equal(reduced.data, source)


def test_reduce_rejects_out_of_range_axis() -> None:
    with pytest.raises(ValidationError) as error:
        AxisTensor(np.zeros((2, 3))).reduce_axes([(2, Operation.SUM)])

    assert error.value.code == "invalid_axis"


def test_zero_length_axis_rejected_when_policy_disallows_it() -> None:
    resolver = BackendResolver(policy=BackendPolicy(zero_length_families=frozenset()))
    tensor = AxisTensor(np.zeros((0, 3)), resolver=resolver)

    with pytest.raises(ValidationError) as error:
        tensor.reshape((3, 0))

    assert error.value.code == "shape_mismatch"
    assert AxisTensor(np.zeros((0, 3))).reshape((3, 0)).shape == (3, 0)


def test_backend_primitive_failure_becomes_execution_error() -> None:
    def broken_permute(tensor: object, axes: tuple[int, ...]) -> object:
        raise RuntimeError("layout not supported")

    ops = BackendArrayOps(
        backend_family=None,
        reshape=np.reshape,
        permute=broken_permute,
        expand_dims=np.expand_dims,
        repeat=np.tile,
        reducers={},
    )
    tensor = AxisTensor(np.zeros((2, 3)), ops=ops)

    with pytest.raises(ExecutionError) as error:
        tensor.transpose((1, 0))

    assert error.value.code == "backend_primitive_failed"
    assert error.value.data == {"operation": "transpose"}
    assert isinstance(error.value.__cause__, RuntimeError)


def test_missing_backend_reducer_is_unsupported_operation() -> None:
    ops = BackendArrayOps(
        backend_family=None,
        reshape=np.reshape,
        permute=np.transpose,
        expand_dims=np.expand_dims,
        repeat=np.tile,
        reducers={},
    )

    with pytest.raises(ValidationError) as error:
        AxisTensor(np.zeros((2, 3)), ops=ops).reduce_axes([(0, "sum")])

    assert error.value.code == "unsupported_operation"


def test_functional_forms_return_engine_tensors() -> None:
    source = np.arange(6).reshape(1, 2, 3)

    reshaped = reshape(source, (3, 2))
    transposed = transpose(source, (2, 1, 0))
    reduced = reduce_axes(source, [(2, "sum")])
    expanded = add_axes(AxisTensor(source), 4, [(0, 2)])

    assert isinstance(reshaped, np.ndarray) and reshaped.shape == (3, 2)
    assert isinstance(transposed, np.ndarray) and transposed.shape == (3, 2, 1)
    np.testing.assert_array_equal(reduced, np.array([[3, 12]]))
    assert isinstance(expanded, np.ndarray) and expanded.shape == (2, 1, 2, 3)
