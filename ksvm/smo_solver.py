"""
Упрощённый Sequential Minimal Optimization (SMO) солвер для kernel SVM.

Алгоритм основан на работе:
- Platt, J. (1998). "Sequential Minimal Optimization: A Fast Algorithm for Training SVMs"
- упрощённая версия из курса CS229 (Stanford): второй индекс j выбирается
  случайно, а не по эвристике максимального нарушения.

Двойственная задача:
    max_α Σ_i α_i - 1/2 Σ_i Σ_j α_i α_j y_i y_j K(x_i,x_j)

    s.t. Σ_i α_i y_i = 0
         0 ≤ α_i ≤ C

Матрица ядра K предвычисляется целиком (O(N²) памяти), кэширования строк нет.

Критерий остановки: max_iter подряд идущих проходов без единого изменения α.
Общее число проходов дополнительно ограничено max_passes.
"""

import logging
import warnings
import numpy as np
from typing import Tuple, Optional, Union
from dataclasses import dataclass
from numba import njit
from sklearn.exceptions import ConvergenceWarning
from tqdm.auto import tqdm

from .exceptions import InvalidInputError

logger = logging.getLogger(__name__)

RandomState = Union[None, int, np.random.Generator, np.random.SeedSequence]


@dataclass
class SMOResult:
    """Результат работы SMO солвера."""
    alpha: np.ndarray          # Множители Лагранжа
    b: float                   # Смещение (bias)
    n_passes: int              # Количество проходов по выборке
    n_updates: int             # Количество успешно обновлённых пар
    converged: bool            # max_iter проходов подряд без изменений
    n_nonzero: int             # Количество α > 0


def check_random_state(random_state: RandomState) -> np.random.Generator:
    """Приводит seed / SeedSequence / Generator к np.random.Generator."""
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


# =============================================================================
# Numba-оптимизированные функции
# =============================================================================

@njit(fastmath=True, cache=True)
def margin_error(K: np.ndarray, alpha: np.ndarray, y: np.ndarray, b: float, i: int) -> float:
    """
    Ошибка на примере i: E_i = b + Σ_k α_k y_k K[k, i] - y_i
    """
    s = b
    for k in range(alpha.shape[0]):
        if alpha[k] != 0.0:
            s += alpha[k] * y[k] * K[k, i]
    return s - y[i]


@njit(fastmath=True, cache=True)
def compute_bounds(
    alpha_i: float,
    alpha_j: float,
    y_i: float,
    y_j: float,
    C: float
) -> Tuple[float, float]:
    """
    Вычисляет границы L и H для α_j при оптимизации пары (i, j).
    """
    if y_i != y_j:
        # y_i ≠ y_j: α_j - α_i = const
        L = max(0.0, alpha_j - alpha_i)
        H = min(C, C + alpha_j - alpha_i)
    else:
        # y_i = y_j: α_i + α_j = const
        L = max(0.0, alpha_i + alpha_j - C)
        H = min(C, alpha_i + alpha_j)
    return L, H


def violates_kkt(y_i: float, E_i: float, alpha_i: float, C: float, tol: float) -> bool:
    """
    Проверка нарушения KKT условий для примера i:
        y_i·E_i < -tol и α_i < C  (можно увеличить α_i)
        y_i·E_i >  tol и α_i > 0  (можно уменьшить α_i)
    """
    r = y_i * E_i
    return (r < -tol and alpha_i < C) or (r > tol and alpha_i > 0)


def compute_bias(
    b: float,
    E_i: float,
    E_j: float,
    y_i: float,
    y_j: float,
    delta_i: float,
    delta_j: float,
    K_ii: float,
    K_ij: float,
    K_jj: float,
    alpha_i: float,
    alpha_j: float,
    C: float
) -> float:
    """
    Обновление смещения по формулам Platt:
        b1 = b - E_i - y_i·Δα_i·K_ii - y_j·Δα_j·K_ij
        b2 = b - E_j - y_i·Δα_i·K_ij - y_j·Δα_j·K_jj

    b1, если α_i строго внутри (0, C); иначе b2, если α_j внутри; иначе среднее.
    """
    b1 = b - E_i - y_i * delta_i * K_ii - y_j * delta_j * K_ij
    b2 = b - E_j - y_i * delta_i * K_ij - y_j * delta_j * K_jj
    if 0.0 < alpha_i < C:
        return b1
    if 0.0 < alpha_j < C:
        return b2
    return (b1 + b2) / 2.0


# =============================================================================
# Основной цикл SMO
# =============================================================================

def smo_main_loop(
    K: np.ndarray,
    y: np.ndarray,
    C: float,
    tol: float,
    max_iter: int,
    max_passes: int,
    rng: np.random.Generator,
    verbose: bool = False
) -> SMOResult:
    """
    Основной цикл упрощённого SMO.

    Args:
        K: Матрица ядра (n_samples, n_samples)
        y: Метки классов, значения {-1, +1}
        C: Параметр регуляризации
        tol: Допуск KKT и минимальное изменение α_j
        max_iter: Число подряд идущих проходов без изменений для остановки
        max_passes: Жёсткий предел общего числа проходов
        rng: Источник случайности для выбора второго индекса
        verbose: Показывать прогресс проходов

    Returns:
        SMOResult с решением
    """
    n_samples = K.shape[0]
    alpha = np.zeros(n_samples, dtype=np.float64)
    b = 0.0

    no_change_passes = 0
    n_passes = 0
    n_updates = 0

    progress = tqdm(total=max_passes, desc="SMO passes", disable=not verbose, leave=False)

    while no_change_passes < max_iter:
        if n_passes >= max_passes:
            break
        n_passes += 1
        changed = 0

        for i in range(n_samples):
            E_i = margin_error(K, alpha, y, b, i)
            if not violates_kkt(y[i], E_i, alpha[i], C, tol):
                continue

            # Второй индекс j ≠ i - равномерно среди остальных
            j = int(rng.integers(0, n_samples - 1))
            if j >= i:
                j += 1

            E_j = margin_error(K, alpha, y, b, j)

            alpha_i_old = alpha[i]
            alpha_j_old = alpha[j]

            L, H = compute_bounds(alpha_i_old, alpha_j_old, y[i], y[j], C)
            if L == H:
                continue

            # η = 2·K_ij - K_ii - K_jj (< 0 для строго выпуклой пары)
            eta = 2.0 * K[i, j] - K[i, i] - K[j, j]
            if eta >= 0:
                continue

            alpha_j_new = alpha_j_old - y[j] * (E_i - E_j) / eta
            alpha_j_new = min(max(alpha_j_new, L), H)

            if abs(alpha_j_new - alpha_j_old) < tol:
                continue

            alpha_i_new = alpha_i_old + y[i] * y[j] * (alpha_j_old - alpha_j_new)
            alpha_i_new = min(max(alpha_i_new, 0.0), C)

            alpha[i] = alpha_i_new
            alpha[j] = alpha_j_new

            b = compute_bias(
                b, E_i, E_j, y[i], y[j],
                alpha_i_new - alpha_i_old, alpha_j_new - alpha_j_old,
                K[i, i], K[i, j], K[j, j],
                alpha_i_new, alpha_j_new, C
            )
            changed += 1

        n_updates += changed
        if changed == 0:
            no_change_passes += 1
        else:
            no_change_passes = 0

        logger.debug("SMO pass %d: %d pairs changed, b=%.6f", n_passes, changed, b)
        progress.update(1)

    progress.close()

    converged = no_change_passes >= max_iter
    if not converged:
        warnings.warn(
            f"SMO stopped after max_passes={max_passes} passes without "
            f"{max_iter} consecutive unchanged passes",
            ConvergenceWarning,
        )

    return SMOResult(
        alpha=alpha,
        b=float(b),
        n_passes=n_passes,
        n_updates=n_updates,
        converged=converged,
        n_nonzero=int(np.sum(alpha > 0))
    )


# =============================================================================
# Основной класс солвера
# =============================================================================

class SimplifiedSMOSolver:
    """
    Решение двойственной задачи SVM упрощённым SMO на предвычисленной
    матрице ядра.
    """

    def __init__(
        self,
        C: float = 1.0,
        tol: float = 1e-3,
        max_iter: int = 10,
        max_passes: int = 10000,
        random_state: RandomState = None,
        verbose: bool = False
    ):
        """
        Args:
            C: Параметр регуляризации (верхняя граница α)
            tol: Допуск KKT условий и минимального изменения α
            max_iter: Число проходов подряд без изменений для остановки
            max_passes: Жёсткий предел общего числа проходов
            random_state: Seed или np.random.Generator для выбора пар
            verbose: Показывать прогресс
        """
        if not C > 0:
            raise InvalidInputError(f"C должно быть > 0, получено {C}")
        if not tol > 0:
            raise InvalidInputError(f"tol должно быть > 0, получено {tol}")
        if max_iter < 1:
            raise InvalidInputError(f"max_iter должно быть >= 1, получено {max_iter}")
        if max_passes < 1:
            raise InvalidInputError(f"max_passes должно быть >= 1, получено {max_passes}")

        self.C = float(C)
        self.tol = float(tol)
        self.max_iter = int(max_iter)
        self.max_passes = int(max_passes)
        self.random_state = random_state
        self.verbose = verbose

    def solve(self, K: np.ndarray, y: np.ndarray, rng: Optional[np.random.Generator] = None) -> SMOResult:
        """
        Решает двойственную задачу SMO.

        Args:
            K: Симметричная матрица ядра (n_samples, n_samples)
            y: Метки классов, значения {-1, +1}
            rng: Генератор, переопределяющий random_state

        Returns:
            SMOResult с решением
        """
        K = np.ascontiguousarray(K, dtype=np.float64)
        y = np.ascontiguousarray(y, dtype=np.float64)
        n_samples = K.shape[0]

        if K.shape != (n_samples, n_samples) or y.shape != (n_samples,):
            raise InvalidInputError(
                f"Несогласованные размеры: K={K.shape}, y={y.shape}"
            )
        if n_samples < 2:
            raise InvalidInputError(f"Нужно минимум 2 примера, получено {n_samples}")

        if rng is None:
            rng = check_random_state(self.random_state)

        logger.debug("SMO solver started: %d samples, C=%g, tol=%g", n_samples, self.C, self.tol)

        result = smo_main_loop(
            K, y, self.C, self.tol, self.max_iter, self.max_passes, rng,
            verbose=self.verbose
        )

        logger.debug(
            "SMO finished: %d passes, %d updates, %d nonzero alphas, converged=%s",
            result.n_passes, result.n_updates, result.n_nonzero, result.converged
        )
        return result
