"""Epoch-level training loops around ``NeuralNetwork.train``."""
import dataclasses
import os
import typing as t
import warnings

import numpy as np

from . import config as config_
from . import data
from . import errors
from . import network


@dataclasses.dataclass
class TrainingResult:
    network: network.NeuralNetwork
    best_accuracy: float
    best_epoch: int
    accuracies: t.List[float]
    model_path: t.Optional[str] = None

    @property
    def epochs(self) -> int:
        return len(self.accuracies)


def rate_to_percent(rate: float) -> str:
    return f"{100.0 * rate:.2f}%"


def new_model_path(
    directory: str = "models", prefix: str = "model_", suffix: str = ".txt"
) -> str:
    """First ``<directory>/<prefix><n><suffix>`` that does not exist yet.

    The directory is created if missing.
    """
    os.makedirs(directory, exist_ok=True)

    i = 0
    while os.path.exists(os.path.join(directory, f"{prefix}{i}{suffix}")):
        i += 1

    return os.path.join(directory, f"{prefix}{i}{suffix}")


def _shuffled(samples: t.Sequence[data.Sample], rng: np.random.Generator):
    return [samples[i] for i in rng.permutation(len(samples))]


def train_epochs(
    net: network.NeuralNetwork,
    train_samples: t.Sequence[data.Sample],
    test_samples: t.Sequence[data.Sample],
    num_epochs: int,
    seed: t.Optional[int] = None,
) -> t.List[float]:
    """Train for a fixed number of epochs, testing after each one."""
    assert int(num_epochs) >= 0

    rng = np.random.default_rng(seed)
    accuracies = []  # type: t.List[float]

    for epoch in np.arange(1, 1 + int(num_epochs)):
        net.train(_shuffled(train_samples, rng))
        accuracy = net.test(test_samples)
        accuracies.append(accuracy)

        print(f"Epoch {epoch} : {rate_to_percent(accuracy)}")

    return accuracies


def train_until_accuracy(
    net: network.NeuralNetwork,
    train_samples: t.Sequence[data.Sample],
    test_samples: t.Sequence[data.Sample],
    target_accuracy: float,
    max_failures: int = 5,
    model_path: t.Optional[str] = None,
    restore_best: bool = False,
    seed: t.Optional[int] = None,
) -> TrainingResult:
    """Train until the test accuracy reaches ``target_accuracy``.

    Every epoch that improves on the best accuracy so far is saved to
    ``model_path``. Training stops early after ``max_failures`` epochs
    without improvement; an epoch whose checkpoint cannot be written
    counts as one of them.

    Parameters
    ----------
    restore_best : :obj:`bool`
        If True, reload the last checkpoint after every epoch without
        improvement, so training always resumes from the best model.

    Returns
    -------
    The best network (reloaded from ``model_path``, or ``net`` itself if
    no epoch ever improved) along with the accuracy history.
    """
    assert len(test_samples), "need test samples to measure accuracy"
    assert int(max_failures) > 0

    if model_path is None:
        model_path = new_model_path()

    rng = np.random.default_rng(seed)

    best_accuracy = net.test(test_samples)
    best_epoch = 0
    failures = 0
    epoch = 0
    saved = False
    accuracies = []  # type: t.List[float]

    while best_accuracy < target_accuracy and failures < int(max_failures):
        epoch += 1
        net.train(_shuffled(train_samples, rng))
        accuracy = net.test(test_samples)
        accuracies.append(accuracy)

        if accuracy <= best_accuracy:
            failures += 1
            print(f" Dis {failures} : Epoch {epoch} : {rate_to_percent(accuracy)}")

            if restore_best and saved:
                try:
                    net = network.NeuralNetwork.load(model_path)

                except (errors.IOFailure, errors.FormatError) as err:
                    warnings.warn(
                        f"could not reload best model from {model_path}: {err}",
                        RuntimeWarning,
                    )

            continue

        try:
            net.save(model_path)

        except errors.IOFailure as err:
            failures += 1
            warnings.warn(
                f"could not save epoch {epoch} ({rate_to_percent(accuracy)}) "
                f"to {model_path}: {err}",
                RuntimeWarning,
            )
            continue

        best_accuracy = accuracy
        best_epoch = epoch
        saved = True
        print(f" Saved : Epoch {epoch} : {rate_to_percent(accuracy)}")

    print(f"MODEL EPOCH {best_epoch} CHOSEN")

    if saved:
        net = network.NeuralNetwork.load(model_path)

    return TrainingResult(
        network=net,
        best_accuracy=best_accuracy,
        best_epoch=best_epoch,
        accuracies=accuracies,
        model_path=model_path if saved else None,
    )


def train_from_config(
    net: network.NeuralNetwork,
    train_samples: t.Sequence[data.Sample],
    test_samples: t.Sequence[data.Sample],
    target_accuracy: float,
    config: config_.TrainingConfig,
    restore_best: bool = False,
) -> TrainingResult:
    """``train_until_accuracy`` with the failure limit, checkpoint directory
    and shuffling seed taken from ``config``."""
    return train_until_accuracy(
        net,
        train_samples,
        test_samples,
        target_accuracy=target_accuracy,
        max_failures=config.max_failures,
        model_path=new_model_path(config.models_dir),
        restore_best=restore_best,
        seed=config.seed,
    )


def load_models(
    directory: str, suffix: str = ".txt"
) -> t.List[t.Tuple[str, network.NeuralNetwork]]:
    """Load every saved model of ``directory``, in file name order.

    Files that fail to load are skipped with a warning.
    """
    try:
        names = os.listdir(directory)

    except OSError as err:
        raise errors.IOFailure(
            err.errno, f"could not list models: {err.strerror}", str(directory)
        ) from err

    models = []

    for name in sorted(names, key=str.lower):
        path = os.path.join(directory, name)

        if not name.endswith(suffix) or not os.path.isfile(path):
            continue

        try:
            models.append((path, network.NeuralNetwork.load(path)))

        except (errors.IOFailure, errors.FormatError) as err:
            warnings.warn(f"could not load model {path}: {err}", RuntimeWarning)

    return models


def report_models(
    directory: str, test_samples: t.Sequence[data.Sample]
) -> t.List[t.Tuple[str, float]]:
    """Print and return the test accuracy of every model in ``directory``."""
    results = []

    for path, net in load_models(directory):
        accuracy = net.test(test_samples)
        results.append((path, accuracy))
        print(
            f"{net.name:>15} ({net.file_path or path:>20}) - "
            f"Accuracy: {rate_to_percent(accuracy):>7}"
        )

    return results
