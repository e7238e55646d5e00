"""
Функции ядра для kernel SVM.

Контракт ядра: evaluate(a, b) -> float, симметричная, детерминированная,
без побочных эффектов.

Встроенные ядра дополнительно предоставляют быстрые пути:
- gram(X): матрица Грама (n_samples, n_samples)
- cross(A, B): матрица ядра между запросами и опорными векторами (m, n)

Быстрые пути скомпилированы Numba. Матрица Грама считается только для
i <= j и зеркалируется, поэтому K[i, j] == K[j, i] выполняется точно.
"""

import json
import numpy as np
from typing import Callable
from numba import njit

from .exceptions import InvalidInputError


# =============================================================================
# Numba-оптимизированные функции ядра
# =============================================================================

@njit(fastmath=True, cache=True)
def _dot(a: np.ndarray, b: np.ndarray) -> float:
    s = 0.0
    for k in range(a.shape[0]):
        s += a[k] * b[k]
    return s


@njit(fastmath=True, cache=True)
def _sq_dist(a: np.ndarray, b: np.ndarray) -> float:
    s = 0.0
    for k in range(a.shape[0]):
        d = a[k] - b[k]
        s += d * d
    return s


@njit(fastmath=True, cache=True)
def linear_gram(X: np.ndarray) -> np.ndarray:
    """K[i, j] = x_i^T x_j, считается верхний треугольник."""
    n = X.shape[0]
    K = np.empty((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i, n):
            v = _dot(X[i], X[j])
            K[i, j] = v
            K[j, i] = v
    return K


@njit(fastmath=True, cache=True)
def linear_cross(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    m = A.shape[0]
    n = B.shape[0]
    M = np.empty((m, n), dtype=np.float64)
    for q in range(m):
        for k in range(n):
            M[q, k] = _dot(A[q], B[k])
    return M


@njit(cache=True)
def polynomial_gram(X: np.ndarray, degree: float, offset: float) -> np.ndarray:
    """K[i, j] = (x_i^T x_j + offset)^degree"""
    n = X.shape[0]
    K = np.empty((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i, n):
            v = (_dot(X[i], X[j]) + offset) ** degree
            K[i, j] = v
            K[j, i] = v
    return K


@njit(cache=True)
def polynomial_cross(A: np.ndarray, B: np.ndarray, degree: float, offset: float) -> np.ndarray:
    m = A.shape[0]
    n = B.shape[0]
    M = np.empty((m, n), dtype=np.float64)
    for q in range(m):
        for k in range(n):
            M[q, k] = (_dot(A[q], B[k]) + offset) ** degree
    return M


@njit(fastmath=True, cache=True)
def gaussian_gram(X: np.ndarray, gamma: float) -> np.ndarray:
    """K[i, j] = exp(-gamma * ||x_i - x_j||^2)"""
    n = X.shape[0]
    K = np.empty((n, n), dtype=np.float64)
    for i in range(n):
        K[i, i] = 1.0
        for j in range(i + 1, n):
            v = np.exp(-gamma * _sq_dist(X[i], X[j]))
            K[i, j] = v
            K[j, i] = v
    return K


@njit(fastmath=True, cache=True)
def gaussian_cross(A: np.ndarray, B: np.ndarray, gamma: float) -> np.ndarray:
    m = A.shape[0]
    n = B.shape[0]
    M = np.empty((m, n), dtype=np.float64)
    for q in range(m):
        for k in range(n):
            M[q, k] = np.exp(-gamma * _sq_dist(A[q], B[k]))
    return M


# =============================================================================
# Классы ядер
# =============================================================================

class LinearKernel:
    """Линейное ядро: K(a, b) = a^T b"""

    name = "linear"

    def evaluate(self, a: np.ndarray, b: np.ndarray) -> float:
        return float(np.dot(a, b))

    def gram(self, X: np.ndarray) -> np.ndarray:
        return linear_gram(X)

    def cross(self, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        return linear_cross(A, B)

    def get_params(self) -> dict:
        return {}

    def __repr__(self):
        return "LinearKernel()"


class PolynomialKernel:
    """Полиномиальное ядро: K(a, b) = (a^T b + offset)^degree"""

    name = "polynomial"

    def __init__(self, degree: float = 2.0, offset: float = 1.0):
        self.degree = float(degree)
        self.offset = float(offset)

    def evaluate(self, a: np.ndarray, b: np.ndarray) -> float:
        return float((np.dot(a, b) + self.offset) ** self.degree)

    def gram(self, X: np.ndarray) -> np.ndarray:
        return polynomial_gram(X, self.degree, self.offset)

    def cross(self, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        return polynomial_cross(A, B, self.degree, self.offset)

    def get_params(self) -> dict:
        return {"degree": self.degree, "offset": self.offset}

    def __repr__(self):
        return f"PolynomialKernel(degree={self.degree}, offset={self.offset})"


class GaussianKernel:
    """Гауссово (RBF) ядро: K(a, b) = exp(-gamma * ||a - b||^2)"""

    name = "gaussian"

    def __init__(self, gamma: float = 0.5):
        if gamma <= 0:
            raise InvalidInputError(f"gamma должно быть > 0, получено {gamma}")
        self.gamma = float(gamma)

    def evaluate(self, a: np.ndarray, b: np.ndarray) -> float:
        diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
        return float(np.exp(-self.gamma * np.dot(diff, diff)))

    def gram(self, X: np.ndarray) -> np.ndarray:
        return gaussian_gram(X, self.gamma)

    def cross(self, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        return gaussian_cross(A, B, self.gamma)

    def get_params(self) -> dict:
        return {"gamma": self.gamma}

    def __repr__(self):
        return f"GaussianKernel(gamma={self.gamma})"


class CallableKernel:
    """
    Обёртка над произвольной функцией f(a, b) -> float.

    Быстрых путей нет: матрица ядра считается поэлементно. Не сериализуется.
    """

    name = None

    def __init__(self, func: Callable[[np.ndarray, np.ndarray], float]):
        self.func = func

    def evaluate(self, a: np.ndarray, b: np.ndarray) -> float:
        return float(self.func(a, b))

    def __repr__(self):
        return f"CallableKernel({self.func!r})"


KERNELS = {
    LinearKernel.name: LinearKernel,
    PolynomialKernel.name: PolynomialKernel,
    GaussianKernel.name: GaussianKernel,
}


def make_kernel(name: str, **params):
    """Создаёт встроенное ядро по имени из реестра KERNELS."""
    try:
        kernel_cls = KERNELS[name]
    except KeyError:
        raise InvalidInputError(
            f"Неизвестное ядро '{name}', доступны: {sorted(KERNELS)}"
        ) from None
    return kernel_cls(**params)


def as_kernel(kernel=None):
    """
    Приводит аргумент к объекту ядра.

    None -> LinearKernel, str -> make_kernel(str), объект с evaluate -> как есть,
    прочие callable -> CallableKernel.
    """
    if kernel is None:
        return LinearKernel()
    if isinstance(kernel, str):
        return make_kernel(kernel)
    if hasattr(kernel, "evaluate"):
        return kernel
    if callable(kernel):
        return CallableKernel(kernel)
    raise InvalidInputError(f"Объект {kernel!r} не является ядром")


def kernel_to_json(kernel) -> str:
    """Сериализует встроенное ядро: {"name": ..., "params": {...}}"""
    name = getattr(kernel, "name", None)
    if name not in KERNELS or not isinstance(kernel, KERNELS[name]):
        raise InvalidInputError(
            f"Ядро {kernel!r} не поддерживает сериализацию, используйте одно из {sorted(KERNELS)}"
        )
    return json.dumps({"name": name, "params": kernel.get_params()})


def kernel_from_json(payload: str):
    data = json.loads(payload)
    return make_kernel(data["name"], **data.get("params", {}))


# =============================================================================
# Матрицы ядра
# =============================================================================

def kernel_matrix(kernel, X: np.ndarray) -> np.ndarray:
    """
    Предвычисляет полную матрицу ядра K (n_samples, n_samples).

    Память и время O(n²): подходит только для небольших выборок.

    Args:
        kernel: Объект ядра
        X: Матрица данных (n_samples, n_features)

    Returns:
        K: Симметричная матрица ядра
    """
    X = np.ascontiguousarray(X, dtype=np.float64)
    gram = getattr(kernel, "gram", None)
    if gram is not None:
        return gram(X)

    n_samples = X.shape[0]
    K = np.empty((n_samples, n_samples), dtype=np.float64)
    for i in range(n_samples):
        for j in range(i, n_samples):
            v = kernel.evaluate(X[i], X[j])
            K[i, j] = v
            K[j, i] = v
    return K


def cross_kernel_matrix(kernel, A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """M[q, k] = K(A[q], B[k]) для запросов A (m, d) и опорных векторов B (n, d)."""
    A = np.ascontiguousarray(A, dtype=np.float64)
    B = np.ascontiguousarray(B, dtype=np.float64)
    if B.shape[0] == 0:
        return np.zeros((A.shape[0], 0), dtype=np.float64)
    cross = getattr(kernel, "cross", None)
    if cross is not None:
        return cross(A, B)

    M = np.empty((A.shape[0], B.shape[0]), dtype=np.float64)
    for q in range(A.shape[0]):
        for k in range(B.shape[0]):
            M[q, k] = kernel.evaluate(A[q], B[k])
    return M
