# A simple multi-layer perceptron built on our autograd implementation

from typing import Sequence
import logging
import random

import numpy as np

from ..autograd import Scalar

logger = logging.getLogger(__name__)


class InputSizeError(ValueError):
    ''' Raised when a neuron is fed a different number of inputs than it has weights '''

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Expected {expected} inputs, not {actual}")
        self.expected = expected
        self.actual = actual


def _as_scalar(x: "Scalar | float") -> Scalar:
    return x if isinstance(x, Scalar) else Scalar(x)


# Mimic the PyTorch API
class Module:
    def zero_grad(self):
        for p in self.parameters():
            p.zero_grad()

    def parameters(self) -> list[Scalar]:
        return []

    def __call__(self, x):
        return self.forward(x)

    def forward(self, x):
        raise NotImplementedError


# A single neuron in the network
class Neuron(Module):
    def __init__(self, input_size: int):
        self.w = [Scalar(random.uniform(-1.0, 1.0), label=f"w{i}") for i in range(input_size)]
        self.b = Scalar(random.uniform(-1.0, 1.0), label="b")

    def forward(self, x: Sequence["Scalar | float"]) -> Scalar:
        # validate before building anything, a bad call must leave the graph untouched
        if len(x) != len(self.w):
            raise InputSizeError(len(self.w), len(x))
        inputs = [_as_scalar(xi) for xi in x]
        r = self.b
        for xi, wi in zip(inputs, self.w):
            r = r + xi * wi
        return r.tanh()

    def parameters(self):
        return self.w + [self.b]

    def __repr__(self):
        return f"TanhNeuron({len(self.w)})"


# A single layer in the neural network
class Layer(Module):
    def __init__(self, input_size: int, output_size: int):
        self.neurons = [Neuron(input_size) for _ in range(output_size)]

    def forward(self, x: Sequence["Scalar | float"]) -> list[Scalar]:
        # wrap plain numbers once so every neuron shares the same input leaves
        inputs = [_as_scalar(xi) for xi in x]
        return [n(inputs) for n in self.neurons]

    def parameters(self):
        return [p for n in self.neurons for p in n.parameters()]

    def __repr__(self):
        return f"Layer of [{', '.join(str(n) for n in self.neurons)}]"


# A multi-layer perceptron
class MultiLayerPerceptron(Module):
    def __init__(self, input_size: int, layer_sizes: Sequence[int]):
        if len(layer_sizes) == 0:
            raise ValueError("MultiLayerPerceptron needs at least one layer")
        sizes = [input_size] + list(layer_sizes)
        self.layers = [Layer(sizes[i], sizes[i + 1]) for i in range(len(layer_sizes))]

    def forward(self, x: Sequence["Scalar | float"]) -> list[Scalar]:
        # forward pass, each layer's outputs are the next layer's inputs
        for layer in self.layers:
            x = layer(x)
        return x

    def parameters(self):
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self):
        return f"MLP of [{', '.join(str(layer) for layer in self.layers)}]"


def mse_loss(predictions: Sequence[Scalar], targets: Sequence["Scalar | float"]) -> Scalar:
    ''' Mean squared error, built from Scalar operations so it can be back-propagated '''
    if len(predictions) == 0:
        raise ValueError("mse_loss needs at least one prediction")
    if len(predictions) != len(targets):
        raise ValueError(f"Got {len(predictions)} predictions for {len(targets)} targets")
    loss = [(p - t) ** 2 for p, t in zip(predictions, targets)]
    total = sum(loss[1:], loss[0])
    return total * (1.0 / len(loss))


def _predict(model: MultiLayerPerceptron, X: np.ndarray) -> list[Scalar]:
    outputs = []
    for x in X:
        o = model(list(x))
        # single-output networks only
        assert len(o) == 1
        outputs.append(o[0])
    return outputs


def _targets(Y: np.ndarray) -> list[float]:
    Y = np.asarray(Y, dtype=np.float64).reshape(-1)
    return [float(y) for y in Y]


def train_sgd(model: MultiLayerPerceptron, X: np.ndarray, Y: np.ndarray, epochs=20, learning_rate=0.05) -> list[float]:
    ''' Full-batch gradient descent, returns the loss measured before each update '''
    targets = _targets(Y)
    params = model.parameters()
    history: list[float] = []

    for epoch in range(epochs):
        # forward pass
        loss = mse_loss(_predict(model, X), targets)

        # backward pass
        model.zero_grad()
        loss.backward()

        # gradient descent
        for p in params:
            p.add_to_data(-learning_rate * p.grad)

        history.append(loss.data)
        logger.info("Epoch [%d/%d], Loss: %.4f", epoch + 1, epochs, loss.data)

    return history


def train_adam(model: MultiLayerPerceptron, X: np.ndarray, Y: np.ndarray, epochs=20, learning_rate=0.05, beta1=0.9, beta2=0.999, eps=1e-08) -> list[float]:
    ''' Full-batch Adam, returns the loss measured before each update '''
    targets = _targets(Y)
    params = model.parameters()
    history: list[float] = []

    # initialize Adam optimizer states
    m = np.zeros(len(params))
    v = np.zeros(len(params))

    for epoch in range(epochs):
        loss = mse_loss(_predict(model, X), targets)

        model.zero_grad()
        loss.backward()

        grad = np.array([p.grad for p in params])
        m = beta1 * m + (1 - beta1) * grad
        v = beta2 * v + (1 - beta2) * grad ** 2
        # bias correction uses the step count
        m_hat = m / (1 - beta1 ** (epoch + 1))
        v_hat = v / (1 - beta2 ** (epoch + 1))
        step = learning_rate * m_hat / (np.sqrt(v_hat) + eps)
        for p, s in zip(params, step):
            p.add_to_data(-float(s))

        history.append(loss.data)
        logger.info("Epoch [%d/%d], Loss: %.4f", epoch + 1, epochs, loss.data)

    return history
