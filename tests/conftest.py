import numpy as np
import pytest

import scratchcnn


@pytest.fixture
def rng():
    return np.random.default_rng(32)


@pytest.fixture
def small_builder():
    return scratchcnn.NetworkBuilder(
        input_rows=6,
        input_cols=6,
        scale_factor=10.0,
        progress_resolution=0,
        seed=123,
        learning_decay=0.97,
    )


@pytest.fixture
def small_net(small_builder):
    return (
        small_builder.add_convolution_layer(2, 3, 1, 0.01)
        .add_max_pool_layer(2, 2)
        .add_fully_connected_layer(3, 0.01)
        .build()
    )


@pytest.fixture
def samples(rng):
    return [
        scratchcnn.Sample(label=i % 3, data=rng.normal(size=(6, 6)) * 10.0)
        for i in range(12)
    ]
