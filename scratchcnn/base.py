import typing as t

import numpy as np

from . import errors


def flatten(X) -> np.ndarray:
    """Concatenate every channel of a feature map, each one row-major.

    ``X`` may be a (channels, rows, cols) array or a sequence of equally
    sized 2D matrices.
    """
    if not isinstance(X, np.ndarray):
        channels = [np.asarray(mat, dtype=float) for mat in X]

        if not channels:
            return np.empty(0, dtype=float)

        if any(mat.ndim != 2 or mat.shape != channels[0].shape for mat in channels):
            raise errors.ShapeMismatchError(
                "all channels of a feature map must be 2D and share the same shape"
            )

        X = np.stack(channels)

    X = np.asarray(X, dtype=float)

    if X.ndim != 3:
        raise errors.ShapeMismatchError(
            f"expected a (channels, rows, cols) tensor, got {X.ndim} dimensions"
        )

    return X.reshape(-1).copy()


def unflatten(vec, channels: int, rows: int, cols: int) -> np.ndarray:
    """Inverse of ``flatten``."""
    vec = np.asarray(vec, dtype=float)

    if vec.ndim != 1 or vec.size != channels * rows * cols:
        raise errors.ShapeMismatchError(
            f"cannot reshape vector of shape {vec.shape} into "
            f"({channels}, {rows}, {cols})"
        )

    return vec.reshape(channels, rows, cols).copy()


class BaseLayer:
    """Unit of computation of a ``NeuralNetwork`` chain.

    Subclasses implement ``forward`` (returning this layer's own output)
    and ``backward`` (updating learnable parameters and returning the
    gradient with respect to the layer input). The network owns the
    ordering of the chain, so layers never talk to their neighbours.
    """

    TAG = ""

    def __init__(self, trainable: bool = False):
        self._cache = None
        self.trainable = bool(trainable)

    def _store_in_cache(self, *args):
        self._cache = args

    def _read_cache(self):
        if self._cache is None:
            raise RuntimeError(
                f"{type(self).__name__}.backward called before any forward pass"
            )

        return self._cache

    def clean_grad_cache(self):
        self._cache = None

    @property
    def has_stored_grads(self):
        return self._cache is not None

    @property
    def input_shape(self) -> t.Tuple[int, ...]:
        raise NotImplementedError

    @property
    def output_shape(self) -> t.Tuple[int, ...]:
        raise NotImplementedError

    @property
    def input_size(self) -> int:
        return int(np.prod(self.input_shape))

    @property
    def output_size(self) -> int:
        return int(np.prod(self.output_shape))

    @property
    def is_spatial(self) -> bool:
        return len(self.input_shape) == 3

    @property
    def size(self) -> int:
        return 0

    def forward(self, X):
        raise NotImplementedError

    def __call__(self, X):
        return self.forward(X)

    def backward(self, dout):
        raise NotImplementedError

    def write(self, stream: t.TextIO):
        raise NotImplementedError

    @classmethod
    def read(cls, reader):
        raise NotImplementedError

    def _as_feature_map(self, X, shape: t.Tuple[int, int, int], what: str):
        X = np.asarray(X, dtype=float)

        if X.ndim == 1:
            return unflatten(X, *shape)

        if tuple(X.shape) != tuple(shape):
            raise errors.ShapeMismatchError(
                f"{what} of {type(self).__name__}: expected shape "
                f"{tuple(shape)}, got {tuple(X.shape)}"
            )

        return X

    def __repr__(self):
        strs = [
            f"{type(self).__name__} {self.input_shape} -> {self.output_shape}"
        ]

        if self.trainable:
            strs.append(f"with {self.size} trainable parameters")

        return " ".join(strs)
