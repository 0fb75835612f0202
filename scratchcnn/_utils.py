import typing as t

import numpy as np

from . import errors


def all_positive(vals):
    if hasattr(vals, "__len__"):
        return all(map(lambda x: x > 0, vals))

    return vals > 0


def out_spatial_dim(input_dim: int, kernel_size: int, stride: int) -> int:
    return 1 + (int(input_dim) - int(kernel_size)) // int(stride)


def weight_init_std_he(dim_in: int) -> float:
    return float(np.sqrt(2.0 / dim_in))


def make_rng(seed: int) -> np.random.Generator:
    assert int(seed) >= 0, "seed must be a non-negative integer"
    return np.random.default_rng(int(seed))


def check_shape(X: np.ndarray, expected: t.Tuple[int, ...], what: str):
    if tuple(X.shape) != tuple(expected):
        raise errors.ShapeMismatchError(
            f"{what}: expected shape {tuple(expected)}, got {tuple(X.shape)}"
        )
