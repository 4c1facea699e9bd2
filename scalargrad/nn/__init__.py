from .nn import InputSizeError, Layer, Module, MultiLayerPerceptron, Neuron, mse_loss, train_adam, train_sgd

__all__ = ["InputSizeError", "Layer", "Module", "MultiLayerPerceptron", "Neuron", "mse_loss", "train_adam", "train_sgd"]
