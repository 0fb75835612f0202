import typing as t

import numpy as np

from . import activation
from . import base
from . import errors
from . import serialization
from . import _utils


def convolve(X: np.ndarray, W: np.ndarray, stride: int = 1) -> np.ndarray:
    """Valid (unpadded) sliding-window product-sum of ``W`` over ``X``.

    The kernel is not flipped. Output shape is
    ``1 + (in - kernel) // stride`` along each axis.
    """
    assert int(stride) > 0

    h_dim, w_dim = X.shape
    h_kernel, w_kernel = W.shape

    if h_kernel > h_dim or w_kernel > w_dim:
        raise errors.ShapeMismatchError(
            f"kernel of shape {W.shape} does not fit input of shape {X.shape}"
        )

    h_out_dim = _utils.out_spatial_dim(h_dim, h_kernel, stride)
    w_out_dim = _utils.out_spatial_dim(w_dim, w_kernel, stride)

    out = np.empty((h_out_dim, w_out_dim), dtype=float)

    for r, h_start in enumerate(range(0, h_dim - h_kernel + 1, stride)):
        h_end = h_start + h_kernel
        for c, w_start in enumerate(range(0, w_dim - w_kernel + 1, stride)):
            w_end = w_start + w_kernel
            out[r, c] = np.sum(X[h_start:h_end, w_start:w_end] * W)

    return out


def full_convolve(X: np.ndarray, W: np.ndarray) -> np.ndarray:
    """Convolution of ``W`` over ``X`` zero-padded on every edge.

    Output shape is ``in + kernel - 1`` along each axis.
    """
    h_kernel, w_kernel = W.shape
    X_padded = np.pad(
        X, pad_width=((h_kernel - 1, h_kernel - 1), (w_kernel - 1, w_kernel - 1))
    )
    return convolve(X_padded, W, stride=1)


def space_array(X: np.ndarray, stride: int) -> np.ndarray:
    """Insert ``stride - 1`` zeros between neighbouring values of ``X``."""
    assert int(stride) > 0

    if stride == 1:
        return X

    h_dim, w_dim = X.shape
    out = np.zeros(((h_dim - 1) * stride + 1, (w_dim - 1) * stride + 1), dtype=float)
    out[::stride, ::stride] = X
    return out


def rotate_180(X: np.ndarray) -> np.ndarray:
    return X[::-1, ::-1]


class _BaseSpatialLayer(base.BaseLayer):
    def __init__(
        self,
        in_length: int,
        in_rows: int,
        in_cols: int,
        kernel_size: int,
        stride: int,
        trainable: bool,
    ):
        assert _utils.all_positive((in_length, in_rows, in_cols))
        assert int(kernel_size) > 0
        assert int(stride) > 0

        super(_BaseSpatialLayer, self).__init__(trainable=trainable)

        self.in_length = int(in_length)
        self.in_rows = int(in_rows)
        self.in_cols = int(in_cols)
        self.stride = int(stride)

        if int(kernel_size) > min(self.in_rows, self.in_cols):
            raise errors.ShapeMismatchError(
                f"window of size {kernel_size} does not fit input of shape "
                f"({self.in_rows}, {self.in_cols})"
            )

    @property
    def input_shape(self):
        return (self.in_length, self.in_rows, self.in_cols)

    @property
    def output_rows(self) -> int:
        return _utils.out_spatial_dim(self.in_rows, self._kernel_size, self.stride)

    @property
    def output_cols(self) -> int:
        return _utils.out_spatial_dim(self.in_cols, self._kernel_size, self.stride)

    @property
    def _kernel_size(self) -> int:
        raise NotImplementedError


class ConvolutionLayer(_BaseSpatialLayer):
    """Bank of square learned filters followed by ReLU.

    Every input channel is convolved with every filter, so the output has
    ``num_filters * in_length`` channels ordered input-channel first:
    output channel ``i * num_filters + f`` is input channel ``i`` filtered
    by filter ``f``.
    """

    TAG = "ConvolutionLayer"

    def __init__(
        self,
        num_filters: int,
        filter_size: int,
        stride: int,
        in_length: int,
        in_rows: int,
        in_cols: int,
        learning_rate: float,
        seed: int,
        filters: t.Optional[np.ndarray] = None,
    ):
        assert int(num_filters) > 0
        assert float(learning_rate) >= 0.0

        self.filter_size = int(filter_size)

        super(ConvolutionLayer, self).__init__(
            in_length=in_length,
            in_rows=in_rows,
            in_cols=in_cols,
            kernel_size=filter_size,
            stride=stride,
            trainable=True,
        )

        self.learning_rate = float(learning_rate)
        self.seed = int(seed)

        shape = (int(num_filters), self.filter_size, self.filter_size)

        if filters is None:
            rng = _utils.make_rng(self.seed)
            filters = rng.normal(loc=0.0, scale=1.0, size=shape)

        filters = np.array(filters, dtype=float)
        _utils.check_shape(filters, shape, "filters")

        self.filters = filters

    @property
    def _kernel_size(self):
        return self.filter_size

    @property
    def num_filters(self) -> int:
        return self.filters.shape[0]

    @property
    def output_shape(self):
        return (self.num_filters * self.in_length, self.output_rows, self.output_cols)

    @property
    def size(self):
        return self.filters.size

    def forward(self, X):
        X = self._as_feature_map(X, self.input_shape, "input")

        out = np.empty(self.output_shape, dtype=float)

        for i, channel in enumerate(X):
            for f, W in enumerate(self.filters):
                conv = convolve(channel, W, stride=self.stride)
                out[i * self.num_filters + f] = activation.relu(conv)

        self._store_in_cache(X)

        return out

    def backward(self, dout):
        (X,) = self._read_cache()
        dout = self._as_feature_map(dout, self.output_shape, "gradient")

        filters_delta = np.zeros_like(self.filters)
        dout_b = np.zeros(self.input_shape, dtype=float)

        fs = self.filter_size

        for i, channel in enumerate(X):
            for f, W in enumerate(self.filters):
                error = dout[i * self.num_filters + f]
                spaced_error = space_array(error, self.stride)

                # Only the leading filter_size rows/cols are filter taps.
                dW = convolve(channel, spaced_error, stride=1)[:fs, :fs]
                filters_delta[f] -= self.learning_rate * dW

                grad = full_convolve(W, rotate_180(spaced_error))
                h_grad, w_grad = grad.shape
                dout_b[i, :h_grad, :w_grad] += grad

        # Filters change only after the whole error has been pushed back.
        self.filters += filters_delta

        return dout_b

    def write(self, stream):
        serialization.write_line(stream, self.TAG)
        serialization.write_header(
            stream,
            self.in_length,
            self.in_rows,
            self.in_cols,
            self.num_filters,
            self.filter_size,
            self.stride,
            self.learning_rate,
            self.seed,
        )

        for W in self.filters:
            serialization.write_values(stream, W)

        serialization.write_line(stream, serialization.BLOCK_END)

    @classmethod
    def read(cls, reader):
        reader.expect(cls.TAG)

        header = reader.next_tokens(
            (int, int, int, int, int, int, float, int), context=f"{cls.TAG} header"
        )
        in_length, in_rows, in_cols, num_filters = header[:4]
        filter_size, stride, learning_rate, seed = header[4:]

        if (
            min(header[:6]) <= 0
            or not np.isfinite(learning_rate)
            or learning_rate < 0.0
        ):
            raise reader.error(f"invalid value in {cls.TAG} header")

        filters = [
            reader.next_array(filter_size * filter_size, context=f"filter {f}")
            for f in range(num_filters)
        ]
        filters = np.asarray(filters).reshape(num_filters, filter_size, filter_size)

        reader.expect(serialization.BLOCK_END, context=f"end of {cls.TAG}")

        return cls(
            num_filters=num_filters,
            filter_size=filter_size,
            stride=stride,
            in_length=in_length,
            in_rows=in_rows,
            in_cols=in_cols,
            learning_rate=learning_rate,
            seed=seed,
            filters=filters,
        )


class MaxPoolLayer(_BaseSpatialLayer):
    TAG = "MaxPoolLayer"

    def __init__(
        self,
        window_size: int,
        stride: int,
        in_length: int,
        in_rows: int,
        in_cols: int,
    ):
        self.window_size = int(window_size)

        super(MaxPoolLayer, self).__init__(
            in_length=in_length,
            in_rows=in_rows,
            in_cols=in_cols,
            kernel_size=window_size,
            stride=stride,
            trainable=False,
        )

    @property
    def _kernel_size(self):
        return self.window_size

    @property
    def output_shape(self):
        return (self.in_length, self.output_rows, self.output_cols)

    def forward(self, X):
        X = self._as_feature_map(X, self.input_shape, "input")

        out = np.empty(self.output_shape, dtype=float)
        max_rows = np.empty(self.output_shape, dtype=int)
        max_cols = np.empty(self.output_shape, dtype=int)

        k = self.window_size

        for l, channel in enumerate(X):
            for r in range(self.output_rows):
                h_start = r * self.stride
                for c in range(self.output_cols):
                    w_start = c * self.stride

                    window = channel[h_start : h_start + k, w_start : w_start + k]
                    r_max, c_max = np.unravel_index(np.argmax(window), window.shape)

                    out[l, r, c] = window[r_max, c_max]
                    max_rows[l, r, c] = h_start + r_max
                    max_cols[l, r, c] = w_start + c_max

        self._store_in_cache(max_rows, max_cols)

        return out

    def backward(self, dout):
        (max_rows, max_cols) = self._read_cache()
        dout = self._as_feature_map(dout, self.output_shape, "gradient")

        dout_b = np.zeros(self.input_shape, dtype=float)

        for l in range(self.in_length):
            for r in range(self.output_rows):
                for c in range(self.output_cols):
                    dout_b[l, max_rows[l, r, c], max_cols[l, r, c]] += dout[l, r, c]

        return dout_b

    def write(self, stream):
        serialization.write_line(stream, self.TAG)
        serialization.write_values(
            stream,
            np.array(
                [
                    self.in_length,
                    self.in_rows,
                    self.in_cols,
                    self.window_size,
                    self.stride,
                ]
            ),
        )
        serialization.write_line(stream, serialization.BLOCK_END)

    @classmethod
    def read(cls, reader):
        reader.expect(cls.TAG)

        in_length, in_rows, in_cols, window_size, stride = reader.next_tokens(
            int, count=5, context=f"{cls.TAG} header"
        )

        if min(in_length, in_rows, in_cols, window_size, stride) <= 0:
            raise reader.error(f"non-positive size in {cls.TAG} header")

        reader.expect(serialization.BLOCK_END, context=f"end of {cls.TAG}")

        return cls(
            window_size=window_size,
            stride=stride,
            in_length=in_length,
            in_rows=in_rows,
            in_cols=in_cols,
        )
