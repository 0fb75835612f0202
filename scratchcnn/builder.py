import copy
import typing as t

from . import base
from . import errors
from . import filter as filter_
from . import linear
from . import network


class NetworkBuilder:
    """Assembles a layer chain one layer at a time.

    Every new layer is sized from the output of the layer appended before
    it, or from the ``input_rows x input_cols`` image for the first one.
    All layers share the builder's seed, and layers added without a learning
    rate use the builder's ``learning_rate``. ``build`` hands each network a
    copy of the layers, so networks built from one builder train apart.

    Example
    -------
    >>> net = (
    ...     NetworkBuilder(28, 28, scale_factor=10, seed=123)
    ...     .add_convolution_layer(8, 5, 1, 0.01)
    ...     .add_max_pool_layer(3, 2)
    ...     .add_fully_connected_layer(10, 0.01)
    ...     .build()
    ... )
    """

    def __init__(
        self,
        input_rows: int,
        input_cols: int,
        scale_factor: float,
        progress_resolution: int = 0,
        seed: int = 0,
        learning_decay: float = 1.0,
        learning_rate: float = 0.01,
    ):
        assert int(input_rows) > 0
        assert int(input_cols) > 0
        assert float(scale_factor) != 0.0
        assert int(seed) >= 0
        assert float(learning_decay) > 0.0
        assert float(learning_rate) >= 0.0

        self.input_rows = int(input_rows)
        self.input_cols = int(input_cols)
        self.scale_factor = float(scale_factor)
        self.progress_resolution = int(progress_resolution)
        self.seed = int(seed)
        self.learning_decay = float(learning_decay)
        self.learning_rate = float(learning_rate)

        self.layers = []  # type: t.List[base.BaseLayer]

    @classmethod
    def from_config(cls, config):
        return cls(
            input_rows=config.input_rows,
            input_cols=config.input_cols,
            scale_factor=config.scale_factor,
            progress_resolution=config.progress_resolution,
            seed=config.seed,
            learning_decay=config.learning_decay,
            learning_rate=config.learning_rate,
        )

    def __len__(self):
        return len(self.layers)

    def _next_spatial_shape(self) -> t.Tuple[int, int, int]:
        if not self.layers:
            return (1, self.input_rows, self.input_cols)

        prev = self.layers[-1]

        if prev.is_spatial:
            return prev.output_shape

        image_size = self.input_rows * self.input_cols

        if prev.output_size % image_size:
            raise errors.ShapeMismatchError(
                f"{prev.output_size} outputs of {type(prev).__name__} cannot be "
                f"arranged as {self.input_rows}x{self.input_cols} feature maps"
            )

        return (prev.output_size // image_size, self.input_rows, self.input_cols)

    def _next_vector_length(self) -> int:
        if not self.layers:
            return self.input_rows * self.input_cols

        return self.layers[-1].output_size

    def _learning_rate(self, learning_rate: t.Optional[float]) -> float:
        return self.learning_rate if learning_rate is None else float(learning_rate)

    def add_convolution_layer(
        self,
        num_filters: int,
        filter_size: int,
        stride: int,
        learning_rate: t.Optional[float] = None,
    ):
        in_length, in_rows, in_cols = self._next_spatial_shape()
        self.layers.append(
            filter_.ConvolutionLayer(
                num_filters=num_filters,
                filter_size=filter_size,
                stride=stride,
                in_length=in_length,
                in_rows=in_rows,
                in_cols=in_cols,
                learning_rate=self._learning_rate(learning_rate),
                seed=self.seed,
            )
        )
        return self

    def add_max_pool_layer(self, window_size: int, stride: int):
        in_length, in_rows, in_cols = self._next_spatial_shape()
        self.layers.append(
            filter_.MaxPoolLayer(
                window_size=window_size,
                stride=stride,
                in_length=in_length,
                in_rows=in_rows,
                in_cols=in_cols,
            )
        )
        return self

    def add_fully_connected_layer(
        self, out_length: int, learning_rate: t.Optional[float] = None
    ):
        self.layers.append(
            linear.FullyConnectedLayer(
                in_length=self._next_vector_length(),
                out_length=out_length,
                learning_rate=self._learning_rate(learning_rate),
                seed=self.seed,
            )
        )
        return self

    def clear_all_layers(self):
        self.layers = []
        return self

    def build(self) -> network.NeuralNetwork:
        if not self.layers or not isinstance(
            self.layers[-1], linear.FullyConnectedLayer
        ):
            last = type(self.layers[-1]).__name__ if self.layers else "nothing"
            raise errors.BuildError(
                f"cannot make neural network: last layer is {last}, "
                "not FullyConnectedLayer"
            )

        # Every built network owns its own copy of the layers.
        return network.NeuralNetwork(
            copy.deepcopy(self.layers),
            scale_factor=self.scale_factor,
            progress_resolution=self.progress_resolution,
            learning_decay=self.learning_decay,
        )
