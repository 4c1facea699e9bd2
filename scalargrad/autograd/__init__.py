from .autograd import Node, Op, Scalar, backward, local_gradients, topological_order

__all__ = ["Node", "Op", "Scalar", "backward", "local_gradients", "topological_order"]
