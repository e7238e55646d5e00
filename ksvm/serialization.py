"""
Сохранение и загрузка обученных моделей в формате NumPy .npz.

Сохраняется всё, что нужно для предсказания:
- гиперпараметры (C, fit_intercept, tol, max_iter, max_passes,
  стратегия отбора, порог) в JSON-заголовке;
- имя и параметры ядра;
- для каждого бинарного классификатора: классы, смещение, опорные векторы,
  их α и метки {-1, +1}.

Поддерживаются только встроенные ядра и стратегии отбора.
"""

import json
import numpy as np
from pathlib import Path

from .exceptions import InvalidInputError
from .kernels import kernel_to_json, kernel_from_json
from .binary_svm import BinaryKernelSVM
from .multiclass import OneVsOneKernelSVM

FORMAT_VERSION = 1


def _header(model, kind: str) -> dict:
    selector = getattr(model.support_selector, "name", None)
    if selector is None:
        raise InvalidInputError(
            f"Стратегия отбора {model.support_selector!r} не поддерживает сериализацию"
        )
    return {
        "format": FORMAT_VERSION,
        "model": kind,
        "C": float(model.C),
        "fit_intercept": bool(model.fit_intercept),
        "tol": float(model.tol),
        "max_iter": int(model.max_iter),
        "max_passes": int(model.max_passes),
        "support_selector": selector,
        "decision_threshold": model.decision_threshold,
        "kernel": json.loads(kernel_to_json(model.kernel)),
        "n_features_in": int(model.n_features_in_),
    }


def _read(path, kind: str):
    with np.load(path, allow_pickle=False) as data:
        arrays = {key: data[key] for key in data.files}
    header = json.loads(str(arrays.pop("header")))
    if header.get("model") != kind:
        raise InvalidInputError(f"Файл {path} содержит модель '{header.get('model')}', ожидалась '{kind}'")
    if header.get("format") != FORMAT_VERSION:
        raise InvalidInputError(f"Неподдерживаемая версия формата: {header.get('format')}")
    return header, arrays


def _model_params(header: dict) -> dict:
    return dict(
        C=header["C"],
        kernel=kernel_from_json(json.dumps(header["kernel"])),
        fit_intercept=header["fit_intercept"],
        tol=header["tol"],
        max_iter=header["max_iter"],
        max_passes=header["max_passes"],
        support_selector=header["support_selector"],
        decision_threshold=header["decision_threshold"],
    )


def _restore_binary(model: BinaryKernelSVM, arrays: dict, prefix: str, n_features: int):
    model.classes_ = arrays[prefix + "classes"]
    model.intercept_ = float(arrays[prefix + "intercept"])
    model.support_vectors_ = arrays[prefix + "support_vectors"].reshape(-1, n_features)
    model.dual_coef_ = arrays[prefix + "dual_coef"]
    model.support_labels_ = arrays[prefix + "support_labels"]
    model.n_features_in_ = n_features


def _binary_arrays(model: BinaryKernelSVM, prefix: str) -> dict:
    return {
        prefix + "classes": model.classes_,
        prefix + "intercept": np.array(model.intercept_),
        prefix + "support_vectors": model.support_vectors_,
        prefix + "dual_coef": model.dual_coef_,
        prefix + "support_labels": model.support_labels_,
    }


def save_binary(model: BinaryKernelSVM, path) -> str:
    """Сохраняет обученный BinaryKernelSVM. Возвращает путь к файлу."""
    model._check_is_fitted()
    header = _header(model, "binary")
    path = Path(path)
    np.savez(path, header=np.array(json.dumps(header)), **_binary_arrays(model, ""))
    return str(path if path.suffix == ".npz" else path.with_name(path.name + ".npz"))


def load_binary(path) -> BinaryKernelSVM:
    header, arrays = _read(path, "binary")
    model = BinaryKernelSVM(**_model_params(header))
    _restore_binary(model, arrays, "", header["n_features_in"])
    return model


def save_multiclass(model: OneVsOneKernelSVM, path) -> str:
    """Сохраняет обученный OneVsOneKernelSVM. Возвращает путь к файлу."""
    model._check_is_fitted()
    header = _header(model, "one_vs_one")
    header["num_classes"] = int(model.num_classes_)
    header["pairs"] = [list(pair) for pair in model.pairs_]

    arrays = {}
    for k, clf in enumerate(model.estimators_):
        arrays.update(_binary_arrays(clf, f"pair{k}_"))

    path = Path(path)
    np.savez(path, header=np.array(json.dumps(header)), **arrays)
    return str(path if path.suffix == ".npz" else path.with_name(path.name + ".npz"))


def load_multiclass(path) -> OneVsOneKernelSVM:
    header, arrays = _read(path, "one_vs_one")
    params = _model_params(header)
    model = OneVsOneKernelSVM(num_classes=header["num_classes"], **params)

    n_features = header["n_features_in"]
    estimators = []
    for k in range(len(header["pairs"])):
        clf = BinaryKernelSVM(**params)
        _restore_binary(clf, arrays, f"pair{k}_", n_features)
        estimators.append(clf)

    model.num_classes_ = header["num_classes"]
    model.pairs_ = [tuple(pair) for pair in header["pairs"]]
    model.estimators_ = estimators
    model.n_features_in_ = n_features
    return model
