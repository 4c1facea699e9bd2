# A scalar reverse-mode autodiff engine and a small neural network library built on it

from .autograd import Scalar, backward
from .nn import Neuron, Layer, MultiLayerPerceptron, InputSizeError, mse_loss

__version__ = "0.1.0"
