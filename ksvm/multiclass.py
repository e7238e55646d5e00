"""
Многоклассовый kernel SVM по схеме one-vs-one.

Для C классов обучается C·(C-1)/2 бинарных классификаторов, по одному на
каждую неупорядоченную пару (a, b), a < b. Пары перебираются в
лексикографическом порядке и хранятся в этом порядке.

Голосование: классификатор пары (a, b) отдаёт голос классу b, если его скор
≥ порога, иначе классу a. Итоговый класс - argmax голосов, при равенстве
побеждает меньший индекс класса.
"""

import logging
import numpy as np
from typing import List, Optional, Tuple, Union
from sklearn.exceptions import NotFittedError
from tqdm.auto import tqdm

from .exceptions import InvalidInputError, DimensionMismatchError
from .binary_svm import (
    BinaryKernelSVM,
    check_array,
    check_queries,
    check_decision_threshold,
    resolve_thresholds,
)
from .kernels import as_kernel
from .selection import get_selector
from .smo_solver import RandomState

logger = logging.getLogger(__name__)


def spawn_generators(random_state: RandomState, n: int) -> List[np.random.Generator]:
    """
    Независимые генераторы для каждого бинарного классификатора.

    Детерминированы при фиксированном seed и не зависят от порядка обучения.
    """
    if isinstance(random_state, np.random.Generator):
        seed_seq = np.random.SeedSequence(int(random_state.integers(2 ** 63)))
    elif isinstance(random_state, np.random.SeedSequence):
        seed_seq = random_state
    else:
        seed_seq = np.random.SeedSequence(random_state)
    return [np.random.default_rng(child) for child in seed_seq.spawn(n)]


def class_pairs(num_classes: int) -> List[Tuple[int, int]]:
    return [(a, b) for a in range(num_classes) for b in range(a + 1, num_classes)]


class OneVsOneKernelSVM:
    """Многоклассовый диспетчер: one-vs-one над BinaryKernelSVM."""

    def __init__(
        self,
        num_classes: Optional[int] = None,
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
            num_classes: Число классов; None - определить по меткам в fit
            C, kernel, fit_intercept, tol, max_iter, max_passes,
            support_selector: Параметры каждого BinaryKernelSVM
            decision_threshold: Фиксированный порог или "batch_mean"
                (среднее скоров классификатора по батчу запросов)
            random_state: Seed для порождения генераторов пар
            verbose: Прогресс обучения пар
        """
        if num_classes is not None and num_classes < 2:
            raise InvalidInputError(f"num_classes должно быть >= 2, получено {num_classes}")

        self.num_classes = num_classes
        self.C = C
        self.kernel = as_kernel(kernel)
        self.fit_intercept = fit_intercept
        self.tol = tol
        self.max_iter = max_iter
        self.max_passes = max_passes
        self.support_selector = get_selector(support_selector)
        self.decision_threshold = check_decision_threshold(decision_threshold)
        self.random_state = random_state
        self.verbose = verbose

        # Проверяем гиперпараметры бинарных классификаторов сразу
        self._make_estimator(None)

        # Результаты
        self.num_classes_: Optional[int] = None
        self.pairs_: Optional[List[Tuple[int, int]]] = None
        self.estimators_: Optional[List[BinaryKernelSVM]] = None
        self.n_features_in_: Optional[int] = None

    @classmethod
    def from_training(cls, X, y, num_classes: Optional[int] = None, **params) -> "OneVsOneKernelSVM":
        """Создаёт диспетчер и сразу обучает его."""
        return cls(num_classes=num_classes, **params).fit(X, y)

    @property
    def n_classifiers_(self) -> int:
        self._check_is_fitted()
        return len(self.estimators_)

    def _make_estimator(self, rng) -> BinaryKernelSVM:
        return BinaryKernelSVM(
            C=self.C,
            kernel=self.kernel,
            fit_intercept=self.fit_intercept,
            tol=self.tol,
            max_iter=self.max_iter,
            max_passes=self.max_passes,
            support_selector=self.support_selector,
            decision_threshold=self.decision_threshold,
            random_state=rng,
            verbose=False
        )

    def fit(self, X, y, num_classes: Optional[int] = None) -> "OneVsOneKernelSVM":
        """
        Обучение всех классификаторов пар.

        Args:
            X: Матрица признаков (n_samples, n_features)
            y: Целочисленные метки в диапазоне 0..num_classes-1
            num_classes: Переопределяет num_classes из конструктора
        """
        X = check_array(X)
        y = np.asarray(y).ravel()
        if y.shape[0] != X.shape[0]:
            raise InvalidInputError(
                f"Число меток ({y.shape[0]}) не совпадает с числом примеров ({X.shape[0]})"
            )
        if not np.issubdtype(y.dtype, np.number) or not np.all(np.isfinite(y)) \
                or not np.all(np.mod(y, 1) == 0):
            raise InvalidInputError("Метки должны быть целыми числами")
        y = y.astype(np.int64)

        if num_classes is None:
            num_classes = self.num_classes
        if num_classes is None:
            num_classes = int(y.max()) + 1
        num_classes = int(num_classes)
        if num_classes < 2:
            raise InvalidInputError(f"num_classes должно быть >= 2, получено {num_classes}")
        if y.min() < 0 or y.max() >= num_classes:
            raise InvalidInputError(
                f"Метки должны лежать в диапазоне 0..{num_classes - 1}, получено [{y.min()}, {y.max()}]"
            )
        missing = sorted(set(range(num_classes)) - set(np.unique(y).tolist()))
        if missing:
            raise InvalidInputError(f"Нет обучающих примеров для классов {missing}")

        pairs = class_pairs(num_classes)
        generators = spawn_generators(self.random_state, len(pairs))

        estimators = []
        iterator = tqdm(pairs, desc="Training one-vs-one SVMs") if self.verbose else pairs
        for (a, b), rng in zip(iterator, generators):
            mask = (y == a) | (y == b)
            clf = self._make_estimator(rng)
            clf.fit(X[mask], y[mask])
            estimators.append(clf)
            logger.debug("Pair (%d, %d): %d samples, %d support vectors", a, b, int(mask.sum()), clf.n_support_)

        self.num_classes_ = num_classes
        self.pairs_ = pairs
        self.estimators_ = estimators
        self.n_features_in_ = X.shape[1]

        logger.info("Trained %d one-vs-one classifiers for %d classes", len(estimators), num_classes)
        return self

    def decision_function(self, X) -> np.ndarray:
        """
        Скоры всех классификаторов: матрица (n_classifiers, n_queries).
        """
        self._check_is_fitted()
        X, _ = check_queries(X, self.n_features_in_)
        return self._scores(X)

    def vote(self, X) -> np.ndarray:
        """
        Голоса классов: матрица (num_classes, n_queries).
        """
        self._check_is_fitted()
        X, _ = check_queries(X, self.n_features_in_)
        return self._votes(self._scores(X))

    def predict(self, X):
        """
        Класс с максимумом голосов. Для 1-D входа возвращает int.
        """
        self._check_is_fitted()
        X, single = check_queries(X, self.n_features_in_)
        votes = self._votes(self._scores(X))
        labels = np.argmax(votes, axis=0).astype(np.int64)
        return int(labels[0]) if single else labels

    def compute_accuracy(self, X, y) -> float:
        """Доля верно классифицированных примеров."""
        self._check_is_fitted()
        X, _ = check_queries(X, self.n_features_in_)
        y = np.asarray(y).ravel()
        if y.shape[0] != X.shape[0]:
            raise DimensionMismatchError(
                f"Число меток ({y.shape[0]}) не совпадает с числом примеров ({X.shape[0]})"
            )
        labels = self.predict(X)
        return float(np.sum(labels == y)) / labels.shape[0]

    def get_params(self) -> dict:
        """Возвращает параметры модели"""
        return {
            'num_classes': self.num_classes,
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
        from .serialization import save_multiclass
        return save_multiclass(self, path)

    @classmethod
    def load(cls, path) -> "OneVsOneKernelSVM":
        from .serialization import load_multiclass
        return load_multiclass(path)

    def _scores(self, X: np.ndarray) -> np.ndarray:
        return np.vstack([clf._raw_scores(X) for clf in self.estimators_])

    def _votes(self, scores: np.ndarray) -> np.ndarray:
        thresholds = resolve_thresholds(scores, self.decision_threshold)
        votes = np.zeros((self.num_classes_, scores.shape[1]), dtype=np.int64)
        for k, (a, b) in enumerate(self.pairs_):
            upper = scores[k] >= thresholds[k]
            votes[b] += upper
            votes[a] += ~upper
        return votes

    def _check_is_fitted(self):
        if self.estimators_ is None:
            raise NotFittedError("The model isn't trained, call `fit` first")
