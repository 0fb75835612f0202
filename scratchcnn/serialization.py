"""Line-oriented text format of saved networks.

    NeuralNetwork
    <origin file path>
    <display name>
    <scaleFactor> <progressResolution> <learningDecay> <layerCount>
    <one block per layer, each starting with its type tag>
    NN---END---NN

Every layer block ends with a ``---END---`` line. Each layer class reads
and writes its own block through ``ModelReader`` and ``write_values``.
"""
import typing as t

import numpy as np

from . import errors


NETWORK_TAG = "NeuralNetwork"
NETWORK_END = "NN---END---NN"
BLOCK_END = "---END---"


def format_value(value) -> str:
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        return str(int(value))

    # repr gives the shortest string that parses back to the same double
    return repr(float(value))


def write_line(stream: t.TextIO, line: str):
    stream.write(line)
    stream.write("\n")


def write_values(stream: t.TextIO, values, trailing_space: bool = True):
    tokens = [format_value(v) for v in np.ravel(values).tolist()]
    line = " ".join(tokens)

    if trailing_space and tokens:
        line += " "

    write_line(stream, line)


def write_header(stream: t.TextIO, *values):
    write_line(stream, " ".join(format_value(v) for v in values))


class ModelReader:
    """Cursor over the lines of a saved model.

    Every read advances the cursor; running out of lines or finding
    tokens that do not parse raises ``FormatError`` with the line number.
    """

    def __init__(self, lines: t.Iterable[str], source: str = "<stream>"):
        self._lines = [line.rstrip("\r\n") for line in lines]
        self._pos = 0
        self.source = str(source)

    @classmethod
    def from_stream(cls, stream: t.TextIO, source: t.Optional[str] = None):
        if source is None:
            source = getattr(stream, "name", "<stream>")

        return cls(stream.read().splitlines(), source=source)

    @property
    def line_number(self) -> int:
        """Number (1-based) of the line read last."""
        return self._pos

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._lines)

    def error(self, message: str) -> errors.FormatError:
        return errors.FormatError(
            f"{self.source}, line {self.line_number}: {message}"
        )

    def peek_line(self) -> t.Optional[str]:
        if self.exhausted:
            return None

        return self._lines[self._pos]

    def next_line(self, context: str = "") -> str:
        if self.exhausted:
            what = f" while reading {context}" if context else ""
            raise errors.FormatError(
                f"{self.source}: unexpected end of file{what}"
            )

        line = self._lines[self._pos]
        self._pos += 1
        return line

    def expect(self, tag: str, context: str = ""):
        line = self.next_line(context or tag)

        if line.strip() != tag:
            raise self.error(f'expected "{tag}", found "{line.strip()}"')

    def next_tokens(
        self,
        types: t.Union[t.Callable, t.Sequence[t.Callable]],
        count: t.Optional[int] = None,
        context: str = "",
    ) -> list:
        """Parse one line of whitespace separated values.

        ``types`` is either one converter applied to exactly ``count``
        tokens, or one converter per token.
        """
        line = self.next_line(context)
        tokens = line.split()

        if callable(types):
            assert count is not None
            types = [types] * int(count)

        if len(tokens) != len(types):
            raise self.error(
                f"expected {len(types)} values{self._in(context)}, "
                f"found {len(tokens)}"
            )

        try:
            return [conv(tok) for conv, tok in zip(types, tokens)]

        except ValueError as err:
            raise self.error(f"invalid value{self._in(context)}: {err}") from err

    def next_array(self, count: int, context: str = "") -> np.ndarray:
        return np.asarray(
            self.next_tokens(float, count=count, context=context), dtype=float
        )

    @staticmethod
    def _in(context: str) -> str:
        return f" in {context}" if context else ""
