import typing as t

import numpy as np
import tqdm.auto

from . import activation
from . import base
from . import data
from . import errors
from . import filter as filter_
from . import linear
from . import serialization


LAYER_TYPES = {
    cls.TAG: cls
    for cls in (
        linear.FullyConnectedLayer,
        filter_.ConvolutionLayer,
        filter_.MaxPoolLayer,
    )
}

DEFAULT_NAME = "myModel"


def check_chain(layers: t.Sequence[base.BaseLayer]):
    """Validate that ``layers`` forms a usable classification chain."""
    if not layers:
        raise errors.BuildError("a network needs at least one layer")

    for i, (prev, cur) in enumerate(zip(layers[:-1], layers[1:]), 1):
        if prev.output_size != cur.input_size:
            raise errors.ShapeMismatchError(
                f"layer {i} ({type(cur).__name__}) expects {cur.input_size} "
                f"inputs but layer {i - 1} ({type(prev).__name__}) produces "
                f"{prev.output_size}"
            )

    if not isinstance(layers[-1], linear.FullyConnectedLayer):
        raise errors.BuildError(
            "last layer must be a FullyConnectedLayer, "
            f"got {type(layers[-1]).__name__}"
        )


class NeuralNetwork:
    """Ordered chain of layers trained one sample at a time.

    Raw pixel intensities are divided by ``scale_factor`` before entering
    the first layer. After every call to ``train``, the learning rate of
    every trainable layer is multiplied by ``learning_decay``.

    A network instance is not safe to train or test from several threads
    at once, since every forward pass overwrites the layer caches.
    """

    def __init__(
        self,
        layers: t.Sequence[base.BaseLayer],
        scale_factor: float,
        progress_resolution: int = 0,
        learning_decay: float = 1.0,
        name: str = DEFAULT_NAME,
        file_path: t.Optional[str] = None,
    ):
        assert float(scale_factor) != 0.0

        layers = tuple(layers)
        check_chain(layers)

        self.layers = layers
        self.scale_factor = float(scale_factor)
        self.progress_resolution = int(progress_resolution)
        self.learning_decay = learning_decay
        self.name = name
        self.file_path = None if file_path is None else str(file_path)

    @property
    def learning_decay(self) -> float:
        return self._learning_decay

    @learning_decay.setter
    def learning_decay(self, value: float):
        assert float(value) > 0.0
        self._learning_decay = float(value)

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str):
        value = str(value)
        # any line break str.splitlines knows of, not only "\n"
        lines = value.splitlines()
        assert lines in ([], [value]), "network name must fit on one line"
        self._name = value

    @property
    def num_classes(self) -> int:
        return self.layers[-1].output_size

    def __len__(self):
        return len(self.layers)

    def __getitem__(self, i):
        return self.layers[i]

    def __iter__(self):
        return iter(self.layers)

    def _prepare(self, sample) -> np.ndarray:
        pixels = sample.data if isinstance(sample, data.Sample) else sample
        pixels = np.asarray(pixels, dtype=float)
        return np.expand_dims(pixels * (1.0 / self.scale_factor), 0)

    def forward(self, sample) -> np.ndarray:
        """Raw output scores for a sample (or a bare 2D pixel matrix)."""
        out = self._prepare(sample)

        for layer in self.layers:
            out = layer(out)

        return out

    def __call__(self, sample):
        return self.forward(sample)

    def backward(self, dout):
        for layer in reversed(self.layers):
            dout = layer.backward(dout)

        return dout

    def error_vector(self, output: np.ndarray, label: int) -> np.ndarray:
        if not 0 <= int(label) < output.size:
            raise ValueError(
                f"label {label} is not a class of a {output.size}-way network"
            )

        expected = np.zeros_like(output)
        expected[int(label)] = 1.0

        return output - expected

    def train(self, samples: t.Sequence[data.Sample]):
        """Run one epoch of online gradient descent over ``samples``."""
        res = self.progress_resolution

        pbar = tqdm.auto.tqdm(
            samples,
            desc=self.name,
            disable=res <= 0,
            mininterval=0.0,
            miniters=max(1, len(samples) // res) if res > 0 else 1,
            leave=False,
        )

        for sample in pbar:
            out = self.forward(sample)
            self.backward(self.error_vector(out, sample.label))

        for layer in self.layers:
            if layer.trainable:
                layer.learning_rate *= self.learning_decay

        self.clean_grad_cache()

    def clean_grad_cache(self):
        for layer in self.layers:
            layer.clean_grad_cache()

    @property
    def has_stored_grads(self) -> bool:
        return any(layer.has_stored_grads for layer in self.layers)

    def guess(self, sample) -> int:
        return int(np.argmax(self.forward(sample)))

    def get_output(self, sample) -> np.ndarray:
        """Class probabilities (softmax of the raw scores)."""
        return activation.softmax(self.forward(sample))

    def test(self, samples: t.Sequence[data.Sample]) -> float:
        if not len(samples):
            return float("nan")

        correct = sum(self.guess(sample) == sample.label for sample in samples)

        return correct / len(samples)

    def test_per_type(
        self, samples: t.Sequence[data.Sample], num_classes: int = 10
    ) -> np.ndarray:
        """Accuracy per class label; ``nan`` for classes without samples."""
        total = np.zeros(num_classes, dtype=int)
        correct = np.zeros(num_classes, dtype=int)

        for sample in samples:
            if not 0 <= sample.label < num_classes:
                continue

            total[sample.label] += 1
            correct[sample.label] += self.guess(sample) == sample.label

        accuracies = np.full(num_classes, np.nan)
        seen = total > 0
        accuracies[seen] = correct[seen] / total[seen]

        return accuracies

    def to_stream(self, stream: t.TextIO, file_path: t.Optional[str] = None):
        if file_path is None:
            file_path = self.file_path or ""

        serialization.write_line(stream, serialization.NETWORK_TAG)
        serialization.write_line(stream, str(file_path))
        serialization.write_line(stream, self.name)
        serialization.write_header(
            stream,
            self.scale_factor,
            self.progress_resolution,
            self.learning_decay,
            len(self.layers),
        )

        for layer in self.layers:
            layer.write(stream)

        serialization.write_line(stream, serialization.NETWORK_END)

    def save(self, file_path: str):
        file_path = str(file_path)

        try:
            with open(file_path, "w", encoding="utf-8", newline="\n") as f:
                self.to_stream(f, file_path=file_path)

        except OSError as err:
            raise errors.IOFailure(
                err.errno, f"could not save network: {err.strerror}", file_path
            ) from err

        self.file_path = file_path

    @classmethod
    def from_stream(cls, stream: t.TextIO, source: t.Optional[str] = None):
        reader = serialization.ModelReader.from_stream(stream, source=source)
        return cls._read(reader)

    @classmethod
    def load(cls, file_path: str):
        file_path = str(file_path)

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                reader = serialization.ModelReader.from_stream(f, source=file_path)

        except OSError as err:
            raise errors.IOFailure(
                err.errno, f"could not load network: {err.strerror}", file_path
            ) from err

        return cls._read(reader)

    @classmethod
    def _read(cls, reader: serialization.ModelReader):
        reader.expect(serialization.NETWORK_TAG, context="network header")

        file_path = reader.next_line("origin file path")
        name = reader.next_line("network name")

        scale_factor, progress_resolution, learning_decay, num_layers = (
            reader.next_tokens((float, int, float, int), context="network header")
        )

        if (
            not np.isfinite(scale_factor)
            or scale_factor == 0.0
            or not np.isfinite(learning_decay)
            or learning_decay <= 0.0
            or num_layers <= 0
        ):
            raise reader.error("invalid value in network header")

        layers = []

        for i in range(num_layers):
            tag = reader.peek_line()

            if tag is None:
                reader.next_line(f"layer block {i}")

            tag = tag.strip()

            if tag == serialization.NETWORK_END:
                raise reader.error(
                    f"layer count mismatch: expected {num_layers}, loaded {i}"
                )

            if tag not in LAYER_TYPES:
                reader.next_line()
                raise reader.error(f'unknown layer type in block {i}: "{tag}"')

            try:
                layers.append(LAYER_TYPES[tag].read(reader))

            except (errors.FormatError, errors.ShapeMismatchError) as err:
                raise errors.FormatError(
                    f"malformed layer block {i} ({tag}): {err}"
                ) from err

        tail = reader.peek_line()

        if tail is not None and tail.strip() in LAYER_TYPES:
            reader.next_line()
            raise reader.error(
                f"layer count mismatch: expected {num_layers}, found more blocks"
            )

        reader.expect(serialization.NETWORK_END, context="network end marker")

        try:
            return cls(
                layers,
                scale_factor=scale_factor,
                progress_resolution=progress_resolution,
                learning_decay=learning_decay,
                name=name,
                file_path=file_path,
            )

        except (errors.ShapeMismatchError, errors.BuildError) as err:
            raise reader.error(f"invalid layer chain: {err}") from err

    def __repr__(self):
        strs = [f"NeuralNetwork '{self.name}' with {len(self)} layers:"]

        for i, layer in enumerate(self.layers):
            strs.append(f" | {i}. {str(layer)}")

        return "\n".join(strs)
