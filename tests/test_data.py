import numpy as np
import pytest

import scratchcnn


def test_sample_copies_data():
    pixels = np.arange(6).reshape(2, 3)
    sample = scratchcnn.Sample(label=4, data=pixels)

    pixels[0, 0] = 100
    assert sample.data[0, 0] == 0.0
    assert sample.data.dtype == float
    assert sample.shape == (2, 3)


def test_sample_is_immutable():
    sample = scratchcnn.Sample(label=1, data=np.zeros((2, 2)))

    with pytest.raises(ValueError):
        sample.data[0, 0] = 1.0

    with pytest.raises(AttributeError):
        sample.label = 2


def test_unlabeled():
    sample = scratchcnn.Sample.unlabeled([[1.0, 2.0]])
    assert sample.label == scratchcnn.UNLABELED
    assert not sample.is_labeled
    assert scratchcnn.Sample(0, [[1.0]]).is_labeled


def test_sample_must_be_2d():
    with pytest.raises(AssertionError):
        scratchcnn.Sample(0, np.zeros(4))
