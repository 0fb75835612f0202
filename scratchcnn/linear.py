import typing as t

import numpy as np

from . import activation
from . import base
from . import serialization
from . import _utils


class FullyConnectedLayer(base.BaseLayer):
    """Dense affine transform followed by leaky ReLU.

    out = leaky_relu(W^T x + b), with ``W`` of shape (in_length, out_length).

    Weights start from N(0, sqrt(2 / in_length)) and biases from
    0.01 * N(0, 1); each is drawn by its own generator seeded with ``seed``.
    """

    TAG = "FullyConnectedLayer"

    def __init__(
        self,
        in_length: int,
        out_length: int,
        learning_rate: float,
        seed: int,
        weights: t.Optional[np.ndarray] = None,
        biases: t.Optional[np.ndarray] = None,
        leak: float = activation.LEAK,
    ):
        assert int(in_length) > 0
        assert int(out_length) > 0
        assert float(learning_rate) >= 0.0
        assert float(leak) >= 0.0

        super(FullyConnectedLayer, self).__init__(trainable=True)

        self.in_length = int(in_length)
        self.out_length = int(out_length)
        self.learning_rate = float(learning_rate)
        self.seed = int(seed)
        self.leak = float(leak)

        shape = (self.in_length, self.out_length)

        if weights is None:
            std = _utils.weight_init_std_he(self.in_length)
            weights = _utils.make_rng(self.seed).normal(0.0, std, size=shape)

        if biases is None:
            biases = 0.01 * _utils.make_rng(self.seed).normal(
                0.0, 1.0, size=self.out_length
            )

        self.weights = np.array(weights, dtype=float)
        self.biases = np.array(biases, dtype=float)

        _utils.check_shape(self.weights, shape, "weights")
        _utils.check_shape(self.biases, (self.out_length,), "biases")

    @property
    def input_shape(self):
        return (self.in_length,)

    @property
    def output_shape(self):
        return (self.out_length,)

    @property
    def size(self):
        return self.weights.size + self.biases.size

    def _as_vector(self, X, length: int, what: str):
        X = np.asarray(X, dtype=float)

        if X.ndim == 3:
            X = base.flatten(X)

        _utils.check_shape(X, (length,), f"{what} of {type(self).__name__}")

        return X

    def forward(self, X):
        X = self._as_vector(X, self.in_length, "input")

        z = np.dot(X, self.weights) + self.biases
        out = activation.leaky_relu(z, self.leak)

        self._store_in_cache(X, z)

        return out

    def backward(self, dout):
        (X, z) = self._read_cache()
        dout = self._as_vector(dout, self.out_length, "gradient")

        dz = dout * activation.leaky_relu_deriv(z, self.leak)

        # Input gradient uses the weights from before this update.
        dX = np.dot(self.weights, dz)

        self.weights -= self.learning_rate * np.outer(X, dz)
        self.biases -= self.learning_rate * dz

        return dX

    def write(self, stream):
        serialization.write_line(stream, self.TAG)
        serialization.write_header(
            stream, self.in_length, self.out_length, self.learning_rate, self.seed
        )
        serialization.write_values(stream, self.biases)

        for row in self.weights:
            serialization.write_values(stream, row)

        serialization.write_line(stream, serialization.BLOCK_END)

    @classmethod
    def read(cls, reader):
        reader.expect(cls.TAG)

        in_length, out_length, learning_rate, seed = reader.next_tokens(
            (int, int, float, int), context=f"{cls.TAG} header"
        )

        if (
            min(in_length, out_length) <= 0
            or not np.isfinite(learning_rate)
            or learning_rate < 0.0
        ):
            raise reader.error(f"invalid value in {cls.TAG} header")

        biases = reader.next_array(out_length, context="biases")
        weights = np.asarray(
            [
                reader.next_array(out_length, context=f"weights row {i}")
                for i in range(in_length)
            ]
        )

        reader.expect(serialization.BLOCK_END, context=f"end of {cls.TAG}")

        return cls(
            in_length=in_length,
            out_length=out_length,
            learning_rate=learning_rate,
            seed=seed,
            weights=weights,
            biases=biases,
        )
