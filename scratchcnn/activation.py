import numpy as np


LEAK = 0.01


def relu(X: np.ndarray) -> np.ndarray:
    return np.maximum(X, 0.0)


def leaky_relu(X: np.ndarray, slope: float = LEAK) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    return np.where(X > 0.0, X, slope * X)


def leaky_relu_deriv(X: np.ndarray, slope: float = LEAK) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    return np.where(X > 0.0, 1.0, slope)


def softmax(X: np.ndarray) -> np.ndarray:
    """Softmax of a score vector, exponentiating the raw scores as-is."""
    exp = np.exp(np.asarray(X, dtype=float))
    return exp / np.sum(exp)
