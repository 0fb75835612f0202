class ScratchCNNError(Exception):
    pass


class FormatError(ScratchCNNError, ValueError):
    """Malformed or truncated model file."""


class ShapeMismatchError(ScratchCNNError, ValueError):
    """Tensor dimensions disagree with what a layer expects."""


class IOFailure(ScratchCNNError, OSError):
    """Model file could not be opened for reading or writing."""


class BuildError(ScratchCNNError):
    pass
