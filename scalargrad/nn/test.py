# Testing script for the neural network built on our autograd
# Test by running: python -m scalargrad.nn.test

import logging
import random

import numpy as np
import pytest
import torch

from ..autograd import Scalar
from .nn import InputSizeError, Layer, MultiLayerPerceptron, Neuron, mse_loss, train_adam, train_sgd

# four rows of a tiny binary classification problem
X = np.array([
    [2.0, 3.0, -1.0],
    [3.0, -1.0, 0.5],
    [0.5, 1.0, 1.0],
    [1.0, 1.0, -1.0],
])
Y = np.array([1.0, -1.0, -1.0, 1.0])


def reset_seeds():
    random.seed(0)
    np.random.seed(0)
    torch.manual_seed(0)


def test_neuron_forward():
    reset_seeds()
    n = Neuron(3)
    out = n([1.0, -2.0, 0.5])
    expected = np.tanh(sum(w.data * x for w, x in zip(n.w, [1.0, -2.0, 0.5])) + n.b.data)
    assert out.data == pytest.approx(expected)
    assert [p.label for p in n.parameters()] == ["w0", "w1", "w2", "b"]
    for p in n.parameters():
        assert -1.0 <= p.data <= 1.0


def test_neuron_input_size_mismatch():
    reset_seeds()
    n = Neuron(3)
    before = [(p.data, p.grad) for p in n.parameters()]
    inputs = [Scalar(1.0), Scalar(2.0)]

    with pytest.raises(InputSizeError, match="Expected 3 inputs, not 2") as e:
        n(inputs)
    assert e.value.expected == 3
    assert e.value.actual == 2
    # a failed call leaves parameters and inputs as they were
    assert [(p.data, p.grad) for p in n.parameters()] == before
    assert all(x.grad == 0.0 for x in inputs)


def test_neuron_gradients():
    reset_seeds()
    n = Neuron(2)
    x = [Scalar(0.5), Scalar(-1.5)]
    out = n(x)
    out.backward()

    d = 1 - out.data ** 2
    assert n.b.grad == pytest.approx(d)
    assert n.w[0].grad == pytest.approx(d * 0.5)
    assert n.w[1].grad == pytest.approx(d * -1.5)
    assert x[0].grad == pytest.approx(d * n.w[0].data)

    n.zero_grad()
    assert all(p.grad == 0.0 for p in n.parameters())


def test_layer_shares_inputs():
    reset_seeds()
    layer = Layer(2, 3)
    x = [Scalar(1.0), Scalar(2.0)]
    out = layer(x)
    assert len(out) == 3
    assert len(layer.parameters()) == 3 * 3

    total = sum(out[1:], out[0])
    total.backward()
    # every neuron contributes to the same input leaves
    expected = sum((1 - o.data ** 2) * n.w[0].data for o, n in zip(out, layer.neurons))
    assert x[0].grad == pytest.approx(expected)

    with pytest.raises(InputSizeError):
        layer([1.0, 2.0, 3.0])


def test_mlp_shapes():
    reset_seeds()
    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    assert len(mlp.layers) == 3
    assert len(mlp.parameters()) == 4 * 4 + 4 * 5 + 1 * 5
    out = mlp([2.0, 3.0, -1.0])
    assert len(out) == 1
    assert -1.0 < out[0].data < 1.0
    assert all(isinstance(o, Scalar) for o in out)

    # without layers there is nothing to turn the inputs into Scalars
    with pytest.raises(ValueError, match="at least one layer"):
        MultiLayerPerceptron(2, [])


def test_mlp_matches_torch():
    ''' Copy our weights into torch tensors and compare forward values and gradients '''
    reset_seeds()
    mlp = MultiLayerPerceptron(3, [4, 4, 1])

    torch_layers = []
    for layer in mlp.layers:
        W = torch.tensor([[w.data for w in n.w] for n in layer.neurons], dtype=torch.float64, requires_grad=True)
        b = torch.tensor([n.b.data for n in layer.neurons], dtype=torch.float64, requires_grad=True)
        torch_layers.append((W, b))

    # autograd
    loss = mse_loss([mlp(list(x))[0] for x in X], list(Y))
    mlp.zero_grad()
    loss.backward()

    # torch
    h = torch.tensor(X, dtype=torch.float64)
    for W, b in torch_layers:
        h = torch.tanh(h @ W.T + b)
    torch_loss = torch.mean((h.reshape(-1) - torch.tensor(Y, dtype=torch.float64)) ** 2)
    torch_loss.backward()

    assert loss.data == pytest.approx(torch_loss.item(), rel=1e-9)
    for layer, (W, b) in zip(mlp.layers, torch_layers):
        assert W.grad is not None and b.grad is not None
        for i, n in enumerate(layer.neurons):
            for j, w in enumerate(n.w):
                assert w.grad == pytest.approx(W.grad[i, j].item(), rel=1e-7, abs=1e-12)
            assert n.b.grad == pytest.approx(b.grad[i].item(), rel=1e-7, abs=1e-12)


def test_mse_loss():
    preds = [Scalar(0.5), Scalar(-0.5)]
    loss = mse_loss(preds, [1.0, -1.0])
    assert loss.data == pytest.approx(0.25)
    loss.backward()
    assert preds[0].grad == pytest.approx(-0.5)
    assert preds[1].grad == pytest.approx(0.5)

    with pytest.raises(ValueError):
        mse_loss(preds, [1.0])
    with pytest.raises(ValueError):
        mse_loss([], [])


def test_train_sgd_loss_non_increasing():
    reset_seeds()
    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    history = train_sgd(mlp, X, Y, epochs=5, learning_rate=0.05)
    assert len(history) == 5
    for before, after in zip(history, history[1:]):
        assert after <= before


def test_train_logs_each_epoch(caplog):
    reset_seeds()
    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    with caplog.at_level(logging.INFO, logger="scalargrad.nn.nn"):
        history = train_sgd(mlp, X, Y, epochs=2, learning_rate=0.05)
    messages = [r.getMessage() for r in caplog.records if r.name == "scalargrad.nn.nn"]
    assert messages == [f"Epoch [{i + 1}/2], Loss: {loss:.4f}" for i, loss in enumerate(history)]


def test_train_sgd_update_rule():
    reset_seeds()
    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    before = [p.data for p in mlp.parameters()]
    history = train_sgd(mlp, X, Y, epochs=1, learning_rate=0.1)
    # grads are left from the single backward pass that drove the update
    for p, old in zip(mlp.parameters(), before):
        assert p.data == pytest.approx(old - 0.1 * p.grad)
    assert history[0] == pytest.approx(mse_loss(_fresh_outputs(before), list(Y)).data)


def _fresh_outputs(params):
    ''' Rebuild the network from saved parameters and run a forward pass '''
    reset_seeds()
    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    for p, value in zip(mlp.parameters(), params):
        p.data = value
    return [mlp(list(x))[0] for x in X]


def test_train_adam():
    reset_seeds()
    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    history = train_adam(mlp, X, Y, epochs=50, learning_rate=0.05)
    assert len(history) == 50
    assert history[-1] < history[0]


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
