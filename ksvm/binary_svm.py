"""
Бинарный kernel SVM, обучаемый упрощённым SMO.

Модель после обучения хранит только отобранные опорные векторы, их α и
метки {-1, +1}, а также смещение b. Именно это множество используется при
предсказании.

Решающая функция:
    f(x) = Σ_k α_k y_k K(x, x_k) + b      (b только при fit_intercept=True)

Порог классификации задаётся decision_threshold:
    - число (по умолчанию 0.0) - фиксирован при обучении;
    - "batch_mean" - среднее значение f по текущему батчу запросов.
      Для одной точки батч состоит из неё самой, и она всегда попадает
      в класс 1.
"""

import logging
import warnings
import numpy as np
from typing import Optional, Union
from sklearn.exceptions import NotFittedError

from .exceptions import InvalidInputError, DimensionMismatchError, DegenerateKernelWarning
from .kernels import as_kernel, kernel_matrix, cross_kernel_matrix
from .selection import get_selector
from .smo_solver import SimplifiedSMOSolver, SMOResult, RandomState

logger = logging.getLogger(__name__)

BATCH_MEAN = "batch_mean"


# =============================================================================
# Проверка входных данных
# =============================================================================

def check_array(X, name: str = "X") -> np.ndarray:
    """Приводит X к непустой конечной матрице float64 (n_samples, n_features)."""
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise InvalidInputError(f"{name} должен быть двумерным, получено ndim={X.ndim}")
    if X.shape[0] == 0 or X.shape[1] == 0:
        raise InvalidInputError(f"{name} пуст: shape={X.shape}")
    if not np.all(np.isfinite(X)):
        raise InvalidInputError(f"{name} содержит NaN или inf")
    return np.ascontiguousarray(X)


def check_queries(X, n_features: int):
    """
    Проверка запросов для предсказания.

    Returns:
        (X, single): матрица запросов и флаг "передана одна точка (1-D)"
    """
    X_arr = np.asarray(X, dtype=np.float64)
    single = X_arr.ndim == 1
    if single:
        X_arr = X_arr.reshape(1, -1)
    X_arr = check_array(X_arr)
    if X_arr.shape[1] != n_features:
        raise DimensionMismatchError(
            f"Ожидалось {n_features} признаков, получено {X_arr.shape[1]}"
        )
    return X_arr, single


def check_decision_threshold(decision_threshold) -> Union[float, str]:
    if isinstance(decision_threshold, str):
        if decision_threshold != BATCH_MEAN:
            raise InvalidInputError(
                f"decision_threshold должен быть числом или '{BATCH_MEAN}', получено '{decision_threshold}'"
            )
        return decision_threshold
    try:
        return float(decision_threshold)
    except (TypeError, ValueError):
        raise InvalidInputError(
            f"decision_threshold должен быть числом или '{BATCH_MEAN}', получено {decision_threshold!r}"
        ) from None


def resolve_thresholds(scores: np.ndarray, decision_threshold) -> np.ndarray:
    """
    Порог для каждой строки матрицы скоров (n_classifiers, n_queries).

    "batch_mean" - среднее по строке, иначе фиксированное число.
    """
    if decision_threshold == BATCH_MEAN:
        return np.mean(scores, axis=-1)
    return np.full(scores.shape[:-1], decision_threshold, dtype=np.float64)


# =============================================================================
# Бинарный классификатор
# =============================================================================

class BinaryKernelSVM:
    """
    Бинарный kernel SVM с упрощённым SMO.

    Метки переводятся в {-1, +1}: меньшая метка -> -1, большая -> +1.
    predict возвращает {0, 1}, где 1 соответствует большей исходной метке.
    """

    def __init__(
        self,
        C: float = 1.0,
        kernel=None,
        fit_intercept: bool = True,
        tol: float = 1e-3,
        max_iter: int = 10,
        max_passes: int = 10000,
        support_selector="positive",
        decision_threshold: Union[float, str] = 0.0,
        random_state: RandomState = None,
        verbose: bool = False
    ):
        """
        Args:
            C: Параметр регуляризации, 0 ≤ α_i ≤ C
            kernel: Объект ядра с evaluate(a, b), имя из реестра или callable
            fit_intercept: Добавлять смещение b к решающей функции
            tol: Допуск KKT и минимального изменения α
            max_iter: Проходов подряд без изменений для остановки SMO
            max_passes: Жёсткий предел общего числа проходов SMO
            support_selector: "positive", "mean" или callable(alpha) -> mask
            decision_threshold: Фиксированный порог или "batch_mean"
            random_state: Seed или np.random.Generator для выбора пар
            verbose: Показывать прогресс SMO
        """
        self.solver = SimplifiedSMOSolver(
            C=C, tol=tol, max_iter=max_iter, max_passes=max_passes,
            random_state=random_state, verbose=verbose
        )
        self.C = self.solver.C
        self.kernel = as_kernel(kernel)
        self.fit_intercept = bool(fit_intercept)
        self.tol = self.solver.tol
        self.max_iter = self.solver.max_iter
        self.max_passes = self.solver.max_passes
        self.support_selector = get_selector(support_selector)
        self.decision_threshold = check_decision_threshold(decision_threshold)
        self.random_state = random_state
        self.verbose = verbose

        # Результаты
        self.classes_: Optional[np.ndarray] = None
        self.support_vectors_: Optional[np.ndarray] = None
        self.dual_coef_: Optional[np.ndarray] = None
        self.support_labels_: Optional[np.ndarray] = None
        self.intercept_: float = 0.0
        self.n_features_in_: Optional[int] = None
        self.result_: Optional[SMOResult] = None

    @classmethod
    def from_training(cls, X, y, **params) -> "BinaryKernelSVM":
        """Создаёт модель и сразу обучает её."""
        return cls(**params).fit(X, y)

    @property
    def n_support_(self) -> int:
        self._check_is_fitted()
        return int(self.support_vectors_.shape[0])

    def fit(self, X, y) -> "BinaryKernelSVM":
        """
        Обучение: проверка данных, предвычисление K, SMO, отбор опорных векторов.

        При ошибке проверки состояние модели не меняется.

        Args:
            X: Матрица признаков (n_samples, n_features)
            y: Метки (n_samples,) ровно с двумя различными значениями
        """
        X = check_array(X)
        y = np.asarray(y).ravel()
        n_samples = X.shape[0]

        if y.shape[0] != n_samples:
            raise InvalidInputError(
                f"Число меток ({y.shape[0]}) не совпадает с числом примеров ({n_samples})"
            )
        classes = np.unique(y)
        if classes.shape[0] != 2:
            raise InvalidInputError(
                f"Бинарный классификатор требует ровно 2 класса, получено {classes.shape[0]}: {classes.tolist()}"
            )

        y_signed = np.where(y == classes[1], 1.0, -1.0)

        K = kernel_matrix(self.kernel, X)
        result = self.solver.solve(K, y_signed)

        # Опорное множество - только то, что прошло отбор
        mask = np.asarray(self.support_selector(result.alpha), dtype=bool)

        self.classes_ = classes
        self.support_vectors_ = X[mask].copy()
        self.dual_coef_ = result.alpha[mask].copy()
        self.support_labels_ = y_signed[mask].copy()
        self.intercept_ = result.b
        self.n_features_in_ = X.shape[1]
        self.result_ = result

        logger.info(
            "Binary SVM %s vs %s: %d/%d support vectors, b=%.6f, passes=%d, converged=%s",
            classes[0], classes[1], self.n_support_, n_samples,
            self.intercept_, result.n_passes, result.converged
        )

        if self.n_support_ == 0:
            warnings.warn(
                f"No support vectors retained for classes {classes.tolist()}: "
                "kernel matrix may be degenerate (eta >= 0 for every pair)",
                DegenerateKernelWarning,
            )

        return self

    def decision_function(self, X):
        """
        Сырые значения решающей функции f(x) для каждого запроса.

        Для 1-D входа возвращает float.
        """
        self._check_is_fitted()
        X, single = check_queries(X, self.n_features_in_)
        scores = self._raw_scores(X)
        return float(scores[0]) if single else scores

    def predict(self, X):
        """
        Метки {0, 1}: 1, если f(x) ≥ порога.

        Для 1-D входа возвращает int.
        """
        self._check_is_fitted()
        X, single = check_queries(X, self.n_features_in_)
        scores = self._raw_scores(X)
        threshold = resolve_thresholds(scores, self.decision_threshold)
        labels = (scores >= threshold).astype(np.int64)
        return int(labels[0]) if single else labels

    def score(self, X, y) -> float:
        """Доля верных предсказаний; y в исходных метках."""
        self._check_is_fitted()
        y = np.asarray(y).ravel()
        y_pred = self.predict(np.atleast_2d(np.asarray(X, dtype=np.float64)))
        if y.shape[0] != y_pred.shape[0]:
            raise DimensionMismatchError(
                f"Число меток ({y.shape[0]}) не совпадает с числом примеров ({y_pred.shape[0]})"
            )
        y_true = (y == self.classes_[1]).astype(np.int64)
        return float(np.mean(y_true == y_pred))

    def get_params(self) -> dict:
        """Возвращает параметры модели"""
        return {
            'C': self.C,
            'kernel': self.kernel,
            'fit_intercept': self.fit_intercept,
            'tol': self.tol,
            'max_iter': self.max_iter,
            'max_passes': self.max_passes,
            'support_selector': self.support_selector,
            'decision_threshold': self.decision_threshold,
            'random_state': self.random_state,
            'verbose': self.verbose
        }

    def save(self, path) -> str:
        from .serialization import save_binary
        return save_binary(self, path)

    @classmethod
    def load(cls, path) -> "BinaryKernelSVM":
        from .serialization import load_binary
        return load_binary(path)

    def _raw_scores(self, X: np.ndarray) -> np.ndarray:
        M = cross_kernel_matrix(self.kernel, X, self.support_vectors_)
        scores = M @ (self.dual_coef_ * self.support_labels_)
        if self.fit_intercept:
            scores = scores + self.intercept_
        return scores

    def _check_is_fitted(self):
        if self.support_vectors_ is None:
            raise NotFittedError("The model isn't trained, call `fit` first")
