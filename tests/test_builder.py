import numpy as np
import pytest

import scratchcnn
from scratchcnn import config


def _mnist_builder(**kwargs):
    return scratchcnn.NetworkBuilder(28, 28, scale_factor=10.0, seed=123, **kwargs)


def test_layer_sizes_follow_the_chain():
    net = (
        _mnist_builder()
        .add_convolution_layer(8, 5, 1, 0.01)
        .add_max_pool_layer(3, 2)
        .add_fully_connected_layer(10, 0.01)
        .build()
    )
    conv, pool, fc = net.layers

    assert conv.input_shape == (1, 28, 28)
    assert conv.output_shape == (8, 24, 24)
    assert pool.output_shape == (8, 11, 11)
    assert fc.in_length == 968
    assert net.num_classes == 10


def test_stacked_convolutions_multiply_channels():
    net = (
        _mnist_builder()
        .add_convolution_layer(2, 3, 1, 0.01)
        .add_convolution_layer(3, 3, 2, 0.01)
        .add_fully_connected_layer(10, 0.01)
        .build()
    )
    assert net[0].output_shape == (2, 26, 26)
    assert net[1].output_shape == (6, 12, 12)
    assert net[2].in_length == 6 * 12 * 12


def test_fully_connected_first_uses_image_size():
    net = _mnist_builder().add_fully_connected_layer(10, 0.01).build()
    assert net[0].in_length == 784
    assert net.forward(np.zeros((28, 28))).shape == (10,)


def test_spatial_layer_after_fully_connected():
    builder = scratchcnn.NetworkBuilder(4, 4, scale_factor=1.0)
    builder.add_fully_connected_layer(32, 0.01).add_convolution_layer(1, 3, 1, 0.01)

    assert builder.layers[1].input_shape == (2, 4, 4)

    net = builder.add_fully_connected_layer(2, 0.01).build()
    assert net.forward(np.ones((4, 4))).shape == (2,)


def test_spatial_layer_after_fully_connected_size_mismatch():
    builder = scratchcnn.NetworkBuilder(4, 4, scale_factor=1.0)
    builder.add_fully_connected_layer(20, 0.01)

    with pytest.raises(scratchcnn.ShapeMismatchError):
        builder.add_max_pool_layer(2, 2)


def test_build_requires_fully_connected_last():
    builder = (
        _mnist_builder()
        .add_convolution_layer(8, 5, 1, 0.01)
        .add_max_pool_layer(3, 2)
    )

    with pytest.raises(scratchcnn.BuildError, match="MaxPoolLayer"):
        builder.build()


def test_build_empty():
    with pytest.raises(scratchcnn.BuildError):
        _mnist_builder().build()


def test_clear_all_layers():
    builder = _mnist_builder().add_fully_connected_layer(10, 0.01)
    assert len(builder) == 1

    builder.clear_all_layers()
    assert len(builder) == 0

    with pytest.raises(scratchcnn.BuildError):
        builder.build()

    net = builder.add_convolution_layer(1, 3, 1, 0.01).add_fully_connected_layer(
        10, 0.01
    ).build()
    assert net[0].input_shape == (1, 28, 28)


def test_window_too_large():
    with pytest.raises(scratchcnn.ShapeMismatchError):
        scratchcnn.NetworkBuilder(4, 4, 1.0).add_convolution_layer(1, 5, 1, 0.01)


def test_network_settings_are_passed_on():
    net = (
        _mnist_builder(progress_resolution=50, learning_decay=0.9)
        .add_fully_connected_layer(10, 0.02)
        .build()
    )
    assert net.scale_factor == 10.0
    assert net.progress_resolution == 50
    assert net.learning_decay == 0.9
    assert net.name == "myModel"
    assert net.file_path is None
    assert net[0].learning_rate == 0.02


def test_same_seed_same_network():
    def make(seed):
        return (
            scratchcnn.NetworkBuilder(8, 8, 1.0, seed=seed)
            .add_convolution_layer(2, 3, 1, 0.01)
            .add_fully_connected_layer(4, 0.01)
            .build()
        )

    a, b, c = make(1), make(1), make(2)

    np.testing.assert_array_equal(a[0].filters, b[0].filters)
    np.testing.assert_array_equal(a[1].weights, b[1].weights)
    assert not np.array_equal(a[0].filters, c[0].filters)


def test_from_config():
    cfg = config.merge_overrides(
        config.TrainingConfig(), input_rows=10, input_cols=12, seed=5
    )
    builder = scratchcnn.NetworkBuilder.from_config(cfg)

    assert (builder.input_rows, builder.input_cols) == (10, 12)
    assert builder.seed == 5
    assert builder.scale_factor == cfg.scale_factor
    assert builder.learning_decay == cfg.learning_decay
    assert builder.progress_resolution == cfg.progress_resolution


def test_default_learning_rate():
    net = (
        scratchcnn.NetworkBuilder(6, 6, 1.0, learning_rate=0.05)
        .add_convolution_layer(2, 3, 1)
        .add_fully_connected_layer(3)
        .add_fully_connected_layer(2, 0.2)
        .build()
    )
    assert [layer.learning_rate for layer in net] == [0.05, 0.05, 0.2]

    assert scratchcnn.NetworkBuilder(6, 6, 1.0).learning_rate == 0.01


def test_from_config_learning_rate():
    cfg = config.merge_overrides(config.TrainingConfig(), learning_rate=0.003)
    net = (
        scratchcnn.NetworkBuilder.from_config(cfg)
        .add_fully_connected_layer(10)
        .build()
    )
    assert net[0].learning_rate == 0.003


def test_built_networks_do_not_share_layers(samples):
    builder = (
        scratchcnn.NetworkBuilder(6, 6, 10.0, seed=3)
        .add_convolution_layer(2, 3, 1, 0.1)
        .add_fully_connected_layer(3, 0.1)
    )
    a, b = builder.build(), builder.build()

    assert a[0] is not b[0]
    assert a[0] is not builder.layers[0]
    np.testing.assert_array_equal(a[0].filters, b[0].filters)

    a.train(samples)

    assert not np.array_equal(a[0].filters, b[0].filters)
    assert not np.array_equal(a[1].weights, b[1].weights)
    assert b[1].learning_rate == 0.1
