from .base import BaseLayer
from .base import flatten
from .base import unflatten
from .builder import NetworkBuilder
from .config import TrainingConfig
from .data import Sample
from .data import UNLABELED
from .errors import BuildError
from .errors import FormatError
from .errors import IOFailure
from .errors import ScratchCNNError
from .errors import ShapeMismatchError
from .filter import ConvolutionLayer
from .filter import MaxPoolLayer
from .linear import FullyConnectedLayer
from .network import NeuralNetwork
