"""
Иерархия ошибок kernel SVM.

- InvalidInputError: пустые данные, несовпадение числа примеров и меток,
  число классов != 2 для бинарного классификатора, неверные гиперпараметры.
- DimensionMismatchError: размерность признаков при предсказании не совпадает
  с обучающей, длина вектора меток не совпадает с числом примеров.
- DegenerateKernelWarning: после обучения не осталось ни одного опорного
  вектора (матрица ядра неинформативна, η >= 0 для всех пар).
"""


class KernelSVMError(Exception):
    """Базовая ошибка пакета."""


class InvalidInputError(KernelSVMError, ValueError):
    pass


class DimensionMismatchError(KernelSVMError, ValueError):
    pass


class DegenerateKernelWarning(UserWarning):
    pass
