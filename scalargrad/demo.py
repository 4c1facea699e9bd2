# Demonstration scenarios for the autograd engine
# Run by: python -m scalargrad <action>

import argparse
import logging
import random
import sys

import numpy as np

from .autograd import Scalar
from .nn import Layer, MultiLayerPerceptron, Neuron, train_sgd

logger = logging.getLogger('scalargrad')


LOG_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}


def setup_logger(log_level='INFO'):
    level = LOG_LEVELS[log_level.upper()]
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%d/%m/%Y, %H:%M:%S',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    return logging.getLogger('scalargrad')


def build_neuron_graph():
    ''' The canonical two-input tanh neuron with hand-picked weights '''
    x1 = Scalar(2.0, label="x1")
    x2 = Scalar(0.0, label="x2")
    w1 = Scalar(-3.0, label="w1")
    w2 = Scalar(1.0, label="w2")
    b = Scalar(6.8814, label="b")
    x1w1 = x1 * w1
    x1w1.label = "x1w1"
    x2w2 = x2 * w2
    x2w2.label = "x2w2"
    x1w1_x2w2 = x1w1 + x2w2
    x1w1_x2w2.label = "x1w1_x2w2"
    n = x1w1_x2w2 + b
    n.label = "sum"
    return {"x1": x1, "x2": x2, "w1": w1, "w2": w2, "b": b,
            "x1w1": x1w1, "x2w2": x2w2, "x1w1_x2w2": x1w1_x2w2, "sum": n}


def manual_tanh(x: Scalar) -> Scalar:
    ''' tanh(x) = (e^2x - 1) / (e^2x + 1), composed from primitive operations '''
    e = x.mul_number(2.0).exp()
    return e.add_number(-1.0) / e.add_number(1.0)


def run_tanh():
    g = build_neuron_graph()
    out = g["sum"].tanh()
    out.label = "tanh"
    out.backward()
    print(out)
    for name in ["sum", "x1w1_x2w2", "x2w2", "x1w1", "w2", "w1", "x2", "x1"]:
        print(g[name])


def run_ops():
    print("\n------ Variable re-use ------")
    a = Scalar(3.0, label="a")
    b = a + a
    b.label = "b"
    b.backward()
    print(a)  # a { data: 3.0000, grad: 2.0000 }
    print(b)  # b { data: 6.0000, grad: 1.0000 }

    print("\n------ Number addition ------")
    x = Scalar(2.0, label="x")
    number = x.add_number(1.0)
    number.label = "number"
    print(number)

    print("\n------ Exp ------")
    exp = x.exp()
    exp.label = "exp"
    print(exp)

    print("\n------ Power ------")
    x = Scalar(3.0, label="x")
    power = x ** 2
    power.label = "power"
    power.backward()
    print(power)
    print(x)  # grad: 2 * 3 = 6

    print("\n------ Division ------")
    x = Scalar(2.0, label="x")
    y = Scalar(4.0, label="y")
    div = x / y
    div.label = "div"
    div.backward()
    print(div)
    print(x)
    print(y)

    print("\n------ Subtraction ------")
    x.zero_grad()
    y.zero_grad()
    sub = x - y
    sub.backward()
    print(sub)
    print(x)
    print(y)

    print("\n------ Manual tanh ------")
    g = build_neuron_graph()
    out = manual_tanh(g["sum"])
    out.label = "manual_tanh"
    out.backward()
    print(out)
    for name in ["sum", "x1w1_x2w2", "x2w2", "x1w1", "w2", "w1"]:
        print(g[name])


def run_nn():
    inputs = [2.0, 3.0]

    neuron = Neuron(2)
    print(f"{neuron}: {neuron(inputs)}")

    layer = Layer(2, 3)
    print(f"{layer}:")
    for o in layer(inputs):
        print(f"  {o}")

    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    out = mlp([2.0, 3.0, -1.0])
    print(f"MLP output: {out[0]}")
    print(f"MLP parameters: {len(mlp.parameters())}")


# four rows of a tiny binary classification problem
TRAIN_X = np.array([
    [2.0, 3.0, -1.0],
    [3.0, -1.0, 0.5],
    [0.5, 1.0, 1.0],
    [1.0, 1.0, -1.0],
])
TRAIN_Y = np.array([1.0, -1.0, -1.0, 1.0])


def run_train(epochs=20, learning_rate=0.05):
    mlp = MultiLayerPerceptron(3, [4, 4, 1])
    history = train_sgd(mlp, TRAIN_X, TRAIN_Y, epochs=epochs, learning_rate=learning_rate)
    predictions = [mlp(list(x))[0].data for x in TRAIN_X]
    logger.info("Final loss: %.4f", history[-1])
    print("Predictions: " + ", ".join(f"{p:.4f}" for p in predictions))
    print("Targets:     " + ", ".join(f"{t:.4f}" for t in TRAIN_Y))
    return history


ACTIONS = ['tanh', 'ops', 'nn', 'train']


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='scalargrad', description='Scalar autograd demonstrations')
    parser.add_argument('action', help=f"Scenario to run, one of: {', '.join(ACTIONS)}")
    parser.add_argument('--log-level', type=str.upper, default='INFO', choices=list(LOG_LEVELS), help='Logging level (DEBUG shows backward-pass gradients)')
    parser.add_argument('--epochs', type=int, default=20, help='Training epochs')
    parser.add_argument('--learning-rate', type=float, default=0.05, help='Gradient descent step size')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for parameter initialization')
    args = parser.parse_args(argv)
    if args.action not in ACTIONS:
        parser.error(f"Unknown action {args.action!r}, expected one of: {', '.join(ACTIONS)}")
    return args


def main(argv=None):
    args = parse_args(argv)
    setup_logger(args.log_level)
    if args.seed is not None:
        random.seed(args.seed)

    if args.action == 'tanh':
        run_tanh()
    elif args.action == 'ops':
        run_ops()
    elif args.action == 'nn':
        run_nn()
    elif args.action == 'train':
        run_train(epochs=args.epochs, learning_rate=args.learning_rate)
    return 0
