"""
Стратегии отбора опорных векторов после завершения SMO.

Стратегия получает вектор α и возвращает булеву маску сохраняемых примеров.
Заменяется без изменения цикла оптимизации.
"""

import numpy as np

from .exceptions import InvalidInputError


class PositiveAlphaSelector:
    """Стандартный критерий SVM: сохраняются все примеры с α > 0."""

    name = "positive"

    def __call__(self, alpha: np.ndarray) -> np.ndarray:
        return alpha > 0


class MeanAlphaSelector:
    """
    Эвристика: сохраняются примеры с α выше среднего по всей выборке.

    Отбрасывает часть двойственной массы, поэтому Σ α_i y_i по сохранённым
    векторам в общем случае ≠ 0 и решающая функция смещается. Имеет смысл
    вместе с decision_threshold="batch_mean".
    """

    name = "mean"

    def __call__(self, alpha: np.ndarray) -> np.ndarray:
        return alpha > np.mean(alpha)


SELECTORS = {
    PositiveAlphaSelector.name: PositiveAlphaSelector,
    MeanAlphaSelector.name: MeanAlphaSelector,
}


def get_selector(selector):
    if isinstance(selector, str):
        try:
            return SELECTORS[selector]()
        except KeyError:
            raise InvalidInputError(
                f"Неизвестная стратегия отбора '{selector}', доступны: {sorted(SELECTORS)}"
            ) from None
    if callable(selector):
        return selector
    raise InvalidInputError(f"Стратегия отбора должна быть строкой или callable, получено {selector!r}")
