import numpy as np
import pytest

import scratchcnn
from scratchcnn import activation
from scratchcnn import linear
from scratchcnn import filter as filter_


def _squared_error(net, samples):
    loss = 0.0
    for sample in samples:
        expected = np.zeros(net.num_classes)
        expected[sample.label] = 1.0
        loss += 0.5 * np.sum((net.forward(sample) - expected) ** 2)
    return loss


def test_forward_output(small_net, samples):
    out = small_net.forward(samples[0])
    assert out.shape == (3,)
    np.testing.assert_allclose(small_net(samples[0].data), out)


def test_forward_scales_pixels(small_net, samples):
    out = small_net.forward(samples[0])

    small_net.scale_factor = 1.0
    np.testing.assert_allclose(small_net.forward(samples[0].data / 10.0), out)


def test_guess_and_output(small_net, samples):
    for sample in samples[:4]:
        probs = small_net.get_output(sample)
        assert np.isclose(probs.sum(), 1.0)
        assert np.all(probs > 0.0)
        np.testing.assert_allclose(
            probs, activation.softmax(small_net.forward(sample))
        )
        assert small_net.guess(sample) == int(np.argmax(probs))


def test_error_vector(small_net):
    out = np.array([0.2, 0.5, -0.1])
    np.testing.assert_allclose(small_net.error_vector(out, 1), [0.2, -0.5, -0.1])

    with pytest.raises(ValueError):
        small_net.error_vector(out, 3)


def test_backward_returns_input_gradient(small_net, samples):
    out = small_net.forward(samples[0])
    grad = small_net.backward(small_net.error_vector(out, 0))
    assert grad.shape == (1, 6, 6)


def test_train_zero_image_only_moves_biases():
    net = (
        scratchcnn.NetworkBuilder(4, 4, scale_factor=1.0, seed=11)
        .add_convolution_layer(2, 2, 1, 0.1)
        .add_max_pool_layer(2, 2)
        .add_fully_connected_layer(3, 0.1)
        .build()
    )
    conv, pool, fc = net.layers
    assert pool.output_shape == (2, 1, 1)

    filters = conv.filters.copy()
    weights = fc.weights.copy()
    biases = fc.biases.copy()

    net.train([scratchcnn.Sample(label=0, data=np.zeros((4, 4)))])

    np.testing.assert_array_equal(conv.filters, filters)
    np.testing.assert_array_equal(fc.weights, weights)
    assert np.all(fc.biases != biases)


def test_train_decays_learning_rates(small_net, samples):
    small_net.train(samples)
    small_net.train(samples)

    for layer in small_net:
        if layer.trainable:
            assert np.isclose(layer.learning_rate, 0.01 * 0.97 ** 2)


def test_train_with_progress_bar(small_builder, samples):
    small_builder.progress_resolution = 4
    net = (
        small_builder.add_max_pool_layer(2, 2)
        .add_fully_connected_layer(3, 0.01)
        .build()
    )
    net.train(samples)
    assert np.isclose(net[-1].learning_rate, 0.01 * 0.97)


def test_train_rejects_unlabeled(small_net):
    with pytest.raises(ValueError):
        small_net.train([scratchcnn.Sample.unlabeled(np.zeros((6, 6)))])


def test_train_reduces_error(rng):
    net = (
        scratchcnn.NetworkBuilder(3, 3, scale_factor=1.0, seed=4)
        .add_fully_connected_layer(3, 0.001)
        .build()
    )
    samples = [
        scratchcnn.Sample(label=i % 3, data=rng.normal(size=(3, 3)))
        for i in range(9)
    ]

    before = _squared_error(net, samples)
    for _ in range(10):
        net.train(samples)

    assert _squared_error(net, samples) < before


def test_test_accuracy(small_net, samples, monkeypatch):
    guesses = iter([0, 1, 1, 0, 2])
    monkeypatch.setattr(small_net, "guess", lambda sample: next(guesses))

    labels = [0, 1, 2, 0, 1]
    batch = [scratchcnn.Sample(label, samples[0].data) for label in labels]

    assert small_net.test(batch) == pytest.approx(0.6)


def test_test_empty(small_net):
    assert np.isnan(small_net.test([]))


def test_test_per_type(small_net, samples, monkeypatch):
    monkeypatch.setattr(small_net, "guess", lambda sample: 0)

    batch = [
        scratchcnn.Sample(label, samples[0].data) for label in (0, 0, 1, 1, 1, 7)
    ]
    accuracies = small_net.test_per_type(batch, num_classes=4)

    assert accuracies.shape == (4,)
    assert accuracies[0] == 1.0
    assert accuracies[1] == 0.0
    assert np.all(np.isnan(accuracies[2:]))


def test_chain_validation():
    fc_a = linear.FullyConnectedLayer(4, 3, 0.01, seed=0)
    fc_b = linear.FullyConnectedLayer(4, 2, 0.01, seed=0)
    pool = filter_.MaxPoolLayer(2, 2, 1, 4, 4)

    with pytest.raises(scratchcnn.ShapeMismatchError):
        scratchcnn.NeuralNetwork([fc_a, fc_b], scale_factor=1.0)

    with pytest.raises(scratchcnn.BuildError):
        scratchcnn.NeuralNetwork([pool], scale_factor=1.0)

    with pytest.raises(scratchcnn.BuildError):
        scratchcnn.NeuralNetwork([], scale_factor=1.0)

    net = scratchcnn.NeuralNetwork([pool, fc_a], scale_factor=1.0)
    assert len(net) == 2
    assert net.num_classes == 3


def test_repr(small_net):
    text = repr(small_net)
    assert "myModel" in text
    assert "ConvolutionLayer" in text
    assert "FullyConnectedLayer" in text


def test_train_clears_layer_caches(small_net, samples):
    small_net.forward(samples[0])
    assert small_net.has_stored_grads

    small_net.train(samples[:2])
    assert not small_net.has_stored_grads

    with pytest.raises(RuntimeError):
        small_net.backward(np.zeros(3))


def test_clean_grad_cache(small_net, samples):
    small_net.forward(samples[0])
    small_net.clean_grad_cache()

    assert not any(layer.has_stored_grads for layer in small_net)
