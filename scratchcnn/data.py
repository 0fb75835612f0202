import dataclasses

import numpy as np


UNLABELED = -1


@dataclasses.dataclass(frozen=True, eq=False)
class Sample:
    """A class label paired with a 2D pixel matrix.

    The matrix is stored as a read-only float copy, so a sample cannot be
    changed after construction.
    """

    label: int
    data: np.ndarray

    def __post_init__(self):
        data = np.array(self.data, dtype=float)

        assert data.ndim == 2, "sample data must be a 2D pixel matrix"

        data.setflags(write=False)

        object.__setattr__(self, "label", int(self.label))
        object.__setattr__(self, "data", data)

    @classmethod
    def unlabeled(cls, data):
        return cls(label=UNLABELED, data=data)

    @property
    def is_labeled(self) -> bool:
        return self.label != UNLABELED

    @property
    def shape(self):
        return self.data.shape
