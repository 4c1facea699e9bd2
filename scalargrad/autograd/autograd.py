# Automatic Differentiation Library
# Reverse-mode autodiff on scalar values, in the spirit of Andrej Karpathy's micrograd

from __future__ import annotations

from enum import Enum
from numbers import Real
import logging

import numpy as np

logger = logging.getLogger(__name__)


class Op(Enum):
    ''' The operation that produced a node '''
    LEAF = "leaf"
    ADD = "add"
    MUL = "mul"
    POW = "pow"
    EXP = "exp"
    TANH = "tanh"


class Node:
    '''
    One vertex of the computation graph.

    Nodes are compared and hashed by identity: two nodes holding the same data
    are still two different vertices.
    '''

    __slots__ = ("data", "grad", "label", "op", "exponent", "producers")

    def __init__(self, data: float, label: str = "", op: Op = Op.LEAF, producers: tuple["Node", ...] = (), exponent: float | None = None):
        self.data = float(data)
        # Gradient of the backward-pass root with respect to this node
        self.grad = 0.0
        self.label = label
        self.op = op
        # Only meaningful for Op.POW, the exponent is a plain number and is not differentiated
        self.exponent = exponent
        # Direct inputs of the operation that created this node, empty for leaves
        self.producers = producers

    def __repr__(self):
        return f"Node({self.op.value}, {self.label!r}, data={self.data}, grad={self.grad})"


def _ieee(f, *args) -> float:
    # numpy gives inf/nan where plain Python floats would raise or go complex
    with np.errstate(all="ignore"):
        return float(f(*args))


def local_gradients(node: Node) -> list[float]:
    '''
    Local derivative rule: the contribution of node.grad to each producer's grad.

    Producer data is read at call time, so parameters mutated after the graph
    was built are seen with their current values.
    '''
    g = node.grad
    if node.op is Op.LEAF:
        return []
    if node.op is Op.ADD:
        return [g for _ in node.producers]
    if node.op is Op.MUL:
        a, b = node.producers
        return [b.data * g, a.data * g]
    if node.op is Op.POW:
        (a,) = node.producers
        p = node.exponent
        return [p * _ieee(np.power, a.data, p - 1) * g]
    if node.op is Op.EXP:
        # d/dx e^x = e^x
        return [node.data * g]
    if node.op is Op.TANH:
        # derivative of tanh is (1 - tanh^2)
        return [(1 - node.data ** 2) * g]
    raise ValueError(f"Unknown operation: {node.op}")


def topological_order(root: "Scalar | Node") -> list[Node]:
    '''
    Post-order of every node reachable from root: producers always come before
    the nodes they feed into, and each node appears exactly once.
    '''
    start = root._node if isinstance(root, Scalar) else root
    ordering: list[Node] = []
    visited: set[Node] = {start}
    # (node, index of the next producer to visit)
    stack: list[tuple[Node, int]] = [(start, 0)]
    while stack:
        node, i = stack.pop()
        if i < len(node.producers):
            stack.append((node, i + 1))
            producer = node.producers[i]
            if producer not in visited:
                visited.add(producer)
                stack.append((producer, 0))
        else:
            ordering.append(node)
    return ordering


def backward(root: "Scalar") -> None:
    '''
    Fill in grad for every node reachable from root.

    Gradients are not reset first: calling this twice without zero_grad()
    accumulates.
    '''
    ordering = topological_order(root)

    # the derivative of the final output node wrt itself is 1
    root._node.grad = 1.0

    # reverse post-order: every consumer of a node is done before the node itself propagates
    for node in reversed(ordering):
        if node.op is Op.LEAF:
            continue
        for producer, contribution in zip(node.producers, local_gradients(node)):
            # += so that a node used several times collects every contribution
            producer.grad += contribution
        logger.debug("%s's gradient: %.4f", node.label, node.grad)


class Scalar:
    '''
    A handle to one graph node.

    Handles share their node: clone() gives a second handle to the same node,
    and every operation creates a new node whose producers are the operands.
    '''

    __slots__ = ("_node",)

    def __init__(self, data: float | int, label: str = ""):
        if not isinstance(data, Real):
            raise TypeError(f"Scalar only accepts real numbers, but got {type(data)}")
        self._node = Node(data, label=label)

    @classmethod
    def _from_node(cls, node: Node) -> "Scalar":
        s = cls.__new__(cls)
        s._node = node
        return s

    @staticmethod
    def _derive(data: float, label: str, op: Op, *producers: "Scalar", exponent: float | None = None) -> "Scalar":
        node = Node(data, label=label, op=op, producers=tuple(p._node for p in producers), exponent=exponent)
        return Scalar._from_node(node)

    # -- state ----------------------------------------------------------------

    @property
    def data(self) -> float:
        return self._node.data

    @data.setter
    def data(self, value: float) -> None:
        self._node.data = float(value)

    @property
    def grad(self) -> float:
        return self._node.grad

    @grad.setter
    def grad(self, value: float) -> None:
        self._node.grad = float(value)

    @property
    def label(self) -> str:
        return self._node.label

    @label.setter
    def label(self, text: str) -> None:
        self._node.label = text

    @property
    def op(self) -> Op:
        return self._node.op

    @property
    def producers(self) -> list["Scalar"]:
        return [Scalar._from_node(n) for n in self._node.producers]

    def clone(self) -> "Scalar":
        return Scalar._from_node(self._node)

    def zero_grad(self) -> None:
        self._node.grad = 0.0

    def add_to_data(self, delta: float) -> None:
        '''In-place parameter update, existing downstream nodes are not recomputed'''
        self._node.data = float(self._node.data + delta)

    def backward(self) -> None:
        backward(self)

    # -- display and identity -------------------------------------------------

    def __str__(self):
        return f"{self.label} {{ data: {self.data:.4f}, grad: {self.grad:.4f} }}"

    def __repr__(self):
        label = f"{self.label}: " if self.label != "" else ""
        return f"Scalar({label}{self.data}, grad={self.grad})"

    def __eq__(self, other):
        if not isinstance(other, Scalar):
            return NotImplemented
        return self._node is other._node

    def __hash__(self):
        return id(self._node)

    # -- operations -----------------------------------------------------------

    def __add__(self, other: "Scalar | float | int") -> "Scalar":
        if isinstance(other, Real):
            return self.add_number(other)
        if not isinstance(other, Scalar):
            return NotImplemented
        return Scalar._derive(self.data + other.data, f"({self.label} + {other.label})", Op.ADD, self, other)

    def __radd__(self, left) -> "Scalar":
        if not isinstance(left, Real):
            return NotImplemented
        return _constant(left) + self

    def __mul__(self, other: "Scalar | float | int") -> "Scalar":
        if isinstance(other, Real):
            return self.mul_number(other)
        if not isinstance(other, Scalar):
            return NotImplemented
        return Scalar._derive(self.data * other.data, f"({self.label} * {other.label})", Op.MUL, self, other)

    def __rmul__(self, left) -> "Scalar":
        if not isinstance(left, Real):
            return NotImplemented
        return _constant(left) * self

    def __neg__(self) -> "Scalar":
        result = self.mul_number(-1.0)
        result.label = f"(-{self.label})"
        return result

    def __sub__(self, other: "Scalar | float | int") -> "Scalar":
        if isinstance(other, Real):
            other = _constant(other)
        if not isinstance(other, Scalar):
            return NotImplemented
        # a - b is a + (-b), only the label reads as a subtraction
        result = self + (-other)
        result.label = f"({self.label} - {other.label})"
        return result

    def __rsub__(self, left) -> "Scalar":
        if not isinstance(left, Real):
            return NotImplemented
        return _constant(left) - self

    def __truediv__(self, other: "Scalar | float | int") -> "Scalar":
        if isinstance(other, Real):
            other = _constant(other)
        if not isinstance(other, Scalar):
            return NotImplemented
        # a / b is a * b^-1, division by zero is left to IEEE semantics
        return self * other.pow(-1.0)

    def __rtruediv__(self, left) -> "Scalar":
        if not isinstance(left, Real):
            return NotImplemented
        return _constant(left) / self

    def __pow__(self, exponent: float | int) -> "Scalar":
        if not isinstance(exponent, Real):
            return NotImplemented
        return self.pow(exponent)

    def pow(self, exponent: float | int) -> "Scalar":
        if not isinstance(exponent, Real):
            raise TypeError(f"Exponent must be a real number, but got {type(exponent)}")
        p = float(exponent)
        return Scalar._derive(_ieee(np.power, self.data, p), f"({self.label}^{p})", Op.POW, self, exponent=p)

    def exp(self) -> "Scalar":
        return Scalar._derive(_ieee(np.exp, self.data), f"exp({self.label})", Op.EXP, self)

    def tanh(self) -> "Scalar":
        ''' Tanh activation function '''
        return Scalar._derive(_ieee(np.tanh, self.data), f"tanh({self.label})", Op.TANH, self)

    def add_number(self, number: float | int) -> "Scalar":
        return self + _constant(number)

    def mul_number(self, number: float | int) -> "Scalar":
        return self * _constant(number)


def _constant(number: float | int) -> Scalar:
    return Scalar(number, label=f"(Constant {number})")
