# Testing script for the autograd engine
# Test by running: python -m scalargrad.autograd.test

import logging
import math

import numpy as np
import pytest
import torch

from .autograd import Node, Op, Scalar, backward, local_gradients, topological_order


def neuron_graph():
    x1 = Scalar(2.0, label="x1")
    x2 = Scalar(0.0, label="x2")
    w1 = Scalar(-3.0, label="w1")
    w2 = Scalar(1.0, label="w2")
    b = Scalar(6.8814, label="b")
    n = x1 * w1 + x2 * w2 + b
    n.label = "sum"
    return x1, x2, w1, w2, b, n


def test_arithmetic():
    ''' Test a simple arithmetic, compare with PyTorch '''

    def forward(x):
        z = 2 * x + 2 + x # use x twice
        q = z.tanh() + z * x
        h = (z / 4) ** 2
        y = h + q + q * x - 1 / (x * x) + (z * 0.1).exp()
        y.backward()
        return x, y

    x0 = torch.Tensor([-4.0]).double()
    x0.requires_grad = True
    x0, y0 = forward(x0)

    x1 = Scalar(-4.0)
    x1, y1 = forward(x1)

    # forward pass went well
    assert y1.data == pytest.approx(y0.data.item(), rel=1e-10)
    # backward pass went well
    assert x0.grad is not None
    assert x1.grad == pytest.approx(x0.grad.item(), rel=1e-10)


def test_binary_operations():
    a, b = Scalar(3.5), Scalar(-1.25)
    assert (a + b).data == 3.5 + -1.25
    assert (a * b).data == 3.5 * -1.25
    assert (a - b).data == 3.5 - -1.25
    assert (a / b).data == pytest.approx(3.5 / -1.25)
    assert (-a).data == -3.5


def test_number_operands():
    x = Scalar(2.0, label="x")
    assert x.add_number(1.0).data == 3.0
    assert x.mul_number(4.0).data == 8.0
    assert (x + 1).data == 3.0
    assert (1 + x).data == 3.0
    assert (10 - x).data == 8.0
    assert (x - 10).data == -8.0
    assert (1 / x).data == 0.5
    assert (x / 4).data == 0.5
    assert sum([x, x, x], Scalar(0.0)).data == 6.0


def test_operations_allocate_new_nodes():
    a = Scalar(1.0)
    c = a + a
    assert c != a
    assert c.op is Op.ADD
    assert c.producers == [a, a]
    # operands are not mutated by building the graph
    assert a.data == 1.0 and a.grad == 0.0
    assert a.op is Op.LEAF and a.producers == []


def test_reused_operand_accumulates():
    a = Scalar(3.0, label="a")
    c = a + a
    c.backward()
    assert a.grad == 2.0
    assert c.grad == 1.0

    d = Scalar(3.0)
    e = d * d
    e.backward()
    assert d.grad == 6.0


def test_shared_subexpression_visited_once():
    a = Scalar(2.0, label="a")
    b = a * 3
    c = b + b
    order = topological_order(c)
    assert len(order) == len(set(order))
    assert order[-1] is c._node
    assert order.index(a._node) < order.index(b._node) < order.index(c._node)
    c.backward()
    assert b.grad == 2.0
    assert a.grad == 6.0


def test_chain_rule():
    x1, x2, w1, w2, b, n = neuron_graph()
    out = n.tanh()
    out.backward()

    assert out.data == pytest.approx(math.sqrt(2) / 2, abs=1e-4)
    assert out.grad == 1.0
    assert n.grad == pytest.approx(0.5, abs=1e-4)
    assert b.grad == pytest.approx(0.5, abs=1e-4)
    assert w1.grad == pytest.approx(1.0, abs=1e-3)
    assert w2.grad == pytest.approx(0.0, abs=1e-4)
    assert x1.grad == pytest.approx(-1.5, abs=1e-3)
    assert x2.grad == pytest.approx(0.5, abs=1e-3)


def test_composite_tanh_matches_primitive():
    direct = neuron_graph()
    out = direct[-1].tanh()
    out.backward()

    composed = neuron_graph()
    e = composed[-1].mul_number(2.0).exp()
    manual = e.add_number(-1.0) / e.add_number(1.0)
    manual.backward()

    assert manual.data == pytest.approx(out.data, abs=1e-12)
    for d, c in zip(direct, composed):
        assert c.grad == pytest.approx(d.grad, abs=1e-9)


def test_pow_exp_tanh_rules():
    x = Scalar(3.0)
    p = x ** 2
    p.backward()
    assert p.data == 9.0
    assert x.grad == 6.0

    y = Scalar(0.5)
    e = y.exp()
    e.backward()
    assert y.grad == pytest.approx(math.exp(0.5))

    z = Scalar(0.3)
    t = z.tanh()
    t.backward()
    assert z.grad == pytest.approx(1 - math.tanh(0.3) ** 2)


def test_division_gradients():
    x = Scalar(2.0, label="x")
    y = Scalar(4.0, label="y")
    div = x / y
    div.backward()
    assert div.data == 0.5
    assert x.grad == pytest.approx(0.25)
    assert y.grad == pytest.approx(-2.0 / 16.0)


def test_local_gradients_are_pure():
    a = Node(2.0)
    b = Node(5.0)
    mul = Node(10.0, op=Op.MUL, producers=(a, b))
    mul.grad = 3.0
    assert local_gradients(mul) == [15.0, 6.0]
    # nothing was written into the producers
    assert a.grad == 0.0 and b.grad == 0.0

    pw = Node(8.0, op=Op.POW, producers=(a,), exponent=3.0)
    pw.grad = 1.0
    assert local_gradients(pw) == [12.0]
    assert local_gradients(a) == []


def test_multiply_reads_current_data():
    a = Scalar(2.0)
    b = Scalar(3.0)
    c = a * b
    # mutate after building the graph, the rule must see the new value
    b.add_to_data(7.0)
    c.backward()
    assert c.data == 6.0  # stale until a new forward pass
    assert a.grad == 10.0
    assert b.grad == 2.0


def test_add_to_data_keeps_plain_float():
    a = Scalar(1.0)
    a.add_to_data(np.float64(1.5))
    assert a.data == 2.5
    assert type(a.data) is float
    a.data = np.float32(0.5)
    assert type(a.data) is float


def test_pow_reads_current_data():
    a = Scalar(2.0)
    p = a ** 3
    a.data = 4.0
    p.backward()
    assert a.grad == 3 * 4.0 ** 2


def test_disconnected_leaf_untouched():
    a = Scalar(1.0)
    b = Scalar(2.0)
    unused = Scalar(5.0)
    unused.grad = 0.25
    c = a * b
    c.backward()
    assert unused.grad == 0.25


def test_backward_accumulates_across_calls():
    a = Scalar(2.0)
    b = Scalar(-3.0)
    # leaves one step below the root: intermediate grads would also be
    # re-propagated on the second call, so deeper nodes grow faster
    c = a * b
    c.backward()
    once = (a.grad, b.grad)
    c.backward()
    assert a.grad == 2 * once[0]
    assert b.grad == 2 * once[1]
    # the root is re-seeded, not accumulated
    assert c.grad == 1.0


def test_backward_twice_repropagates_intermediate_grads():
    a = Scalar(2.0)
    b = Scalar(3.0)
    c = a * b
    d = c * 2
    d.backward()
    assert (c.grad, a.grad, b.grad) == (2.0, 6.0, 4.0)
    d.backward()
    # c keeps its first grad and gets another 2, then pushes all 4 down again:
    # a = 6 + 3 * 4, three times the single-call value
    assert d.grad == 1.0
    assert c.grad == 4.0
    assert a.grad == 18.0
    assert b.grad == 12.0


def test_zero_grad_then_backward_matches_fresh_graph():
    fresh = neuron_graph()
    fresh_out = fresh[-1].tanh()
    fresh_out.backward()

    reused = neuron_graph()
    out = reused[-1].tanh()
    out.backward()
    out.backward()
    for node in topological_order(out):
        node.grad = 0.0
    out.backward()

    for f, r in zip(fresh, reused):
        assert r.grad == f.grad


def test_zero_grad_only_resets_own_node():
    a = Scalar(1.0)
    c = a * 2
    c.backward()
    c.zero_grad()
    assert c.grad == 0.0
    assert a.grad == 2.0


def test_clone_shares_node():
    a = Scalar(1.0, label="a")
    b = a.clone()
    assert b == a
    assert hash(b) == hash(a)
    b.add_to_data(1.0)
    b.label = "b"
    assert a.data == 2.0
    assert a.label == "b"
    # equal data on distinct nodes is not equality
    assert Scalar(1.0) != Scalar(1.0)
    assert len({Scalar(1.0), Scalar(1.0), a, b}) == 3


def test_non_finite_values_propagate():
    x = Scalar(1.0)
    zero = Scalar(0.0)
    q = x / zero
    q.backward()
    assert q.data == math.inf
    assert x.grad == math.inf
    assert zero.grad == -math.inf

    assert math.isnan((Scalar(-8.0) ** 0.5).data)
    assert Scalar(1000.0).exp().data == math.inf
    assert (Scalar(0.0) ** -1).data == math.inf


def test_labels_and_display():
    x1, x2, w1, w2, b, n = neuron_graph()
    out = n.tanh()
    assert out.label == "tanh(sum)"
    assert (x1 * w1).label == "(x1 * w1)"
    assert (x1 + w1).label == "(x1 + w1)"
    assert (x1 - w1).label == "(x1 - w1)"
    assert (-x1).label == "(-x1)"
    assert (x1 ** 2).label == "(x1^2.0)"
    assert x1.exp().label == "exp(x1)"
    assert x1.add_number(1.0).label == "(x1 + (Constant 1.0))"

    out.label = "tanh"
    out.backward()
    assert str(out) == "tanh { data: 0.7071, grad: 1.0000 }"
    assert str(w1) == "w1 { data: -3.0000, grad: 1.0000 }"
    assert repr(Scalar(1.5, label="k")) == "Scalar(k: 1.5, grad=0.0)"


def test_unsupported_operands():
    x = Scalar(2.0)
    with pytest.raises(TypeError):
        x ** Scalar(2.0)
    with pytest.raises(TypeError):
        x + "1"
    with pytest.raises(TypeError):
        Scalar("1")


def test_deep_chain_does_not_recurse():
    x = Scalar(1.0)
    y = x
    for _ in range(2000):
        y = y + x
    backward(y)
    assert y.data == 2001.0
    assert x.grad == 2001.0


def test_backward_logs_gradients(caplog):
    a = Scalar(3.0, label="a")
    b = a * a
    b.label = "b"
    with caplog.at_level(logging.DEBUG, logger="scalargrad.autograd.autograd"):
        b.backward()
    assert "b's gradient: 1.0000" in caplog.text


def test_linear_regression():
    ''' Test linear regression '''

    # prepare data
    # y = a * x + b
    x = np.linspace(-10, 10, 50)
    a0 = 3.0
    b0 = 1.0
    y = a0 * x + b0

    # initial values
    a = Scalar(1.0)
    b = Scalar(0.0)

    for i in range(1000):
        y_est = [a * x_i + b for x_i in x] # our autograd doesn't support vectorized operations
        loss = [(ye - yi) ** 2 for ye, yi in zip(y_est, y)]
        avg_loss = sum(loss, Scalar(0.0)) / len(loss)
        a.zero_grad()
        b.zero_grad()
        avg_loss.backward()

        lr = 0.01
        a.add_to_data(-lr * a.grad)
        b.add_to_data(-lr * b.grad)

    assert abs(a.data - a0) < 1e-5
    assert abs(b.data - b0) < 1e-5


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
