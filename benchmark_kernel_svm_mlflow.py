import os
import sys
import time
import logging
import numpy as np
import mlflow
from tqdm.auto import tqdm
from sklearn.datasets import make_blobs
from sklearn.metrics import accuracy_score, f1_score, classification_report
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from ksvm import OneVsOneKernelSVM, make_kernel

logger = logging.getLogger(__name__)

# --- КОНФИГУРАЦИЯ ---
CONFIG = {
    # Синтетические данные
    "n_samples": 600,
    "n_features": 4,
    "n_classes": 4,
    "cluster_std": 2.0,
    "test_size": 0.3,
    "random_state": 42,
    "use_scaler": True,

    # Параметры SMO
    "C": 1.0,
    "tol": 1e-3,
    "max_iter": 10,
    "max_passes": 10000,
    "support_selector": "positive",   # "mean" - эвристика α > mean(α)
    "decision_threshold": 0.0,        # "batch_mean" - порог по батчу запросов

    # Ядра для сравнения: имя -> параметры
    # gamma для SVC берётся тем же, что у нашего GaussianKernel
    "kernels": {
        "linear": {},
        "polynomial": {"degree": 2.0, "offset": 1.0},
        "gaussian": {"gamma": 0.5},
    },
    "run_sklearn_baseline": True,

    # MLFLOW Settings
    "mlflow_tracking_uri": "http://localhost:5000",
    "experiment_name": "Kernel_SVM_SMO_vs_sklearn",
    "artifacts_dir": "./benchmark_artifacts",
}

# Переменная окружения имеет приоритет над значением по умолчанию
os.environ.setdefault("MLFLOW_TRACKING_URI", CONFIG["mlflow_tracking_uri"])
os.makedirs(CONFIG["artifacts_dir"], exist_ok=True)


def sklearn_kernel_params(name, params):
    """Параметры SVC, эквивалентные нашему ядру."""
    if name == "linear":
        return {"kernel": "linear"}
    if name == "polynomial":
        # SVC: (gamma·<a,b> + coef0)^degree
        return {"kernel": "poly", "degree": int(params["degree"]), "gamma": 1.0, "coef0": params["offset"]}
    if name == "gaussian":
        return {"kernel": "rbf", "gamma": params["gamma"]}
    raise ValueError(f"Unknown kernel: {name}")


def load_data():
    X, y = make_blobs(
        n_samples=CONFIG["n_samples"],
        n_features=CONFIG["n_features"],
        centers=CONFIG["n_classes"],
        cluster_std=CONFIG["cluster_std"],
        random_state=CONFIG["random_state"],
    )
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=CONFIG["test_size"], stratify=y, random_state=CONFIG["random_state"]
    )
    if CONFIG["use_scaler"]:
        scaler = StandardScaler()
        X_train = scaler.fit_transform(X_train)
        X_test = scaler.transform(X_test)
    return X_train, X_test, y_train, y_test


def compute_metrics(y_true, y_pred):
    return {
        "accuracy": accuracy_score(y_true, y_pred),
        "f1_macro": f1_score(y_true, y_pred, average='macro'),
        "f1_weighted": f1_score(y_true, y_pred, average='weighted'),
    }


def train_sklearn_baseline(name, params, X_train, y_train, X_test, y_test):
    """Обучает sklearn SVC с тем же ядром и логирует в MLflow."""
    svc_params = sklearn_kernel_params(name, params)
    with mlflow.start_run(run_name=f"sklearn_SVC_{name}"):
        mlflow.log_param("classifier", "sklearn.svm.SVC")
        mlflow.log_param("C", CONFIG["C"])
        for key, value in svc_params.items():
            mlflow.log_param(f"svc_{key}", value)

        start = time.perf_counter()
        svc = SVC(C=CONFIG["C"], **svc_params).fit(X_train, y_train)
        train_time = time.perf_counter() - start

        y_pred = svc.predict(X_test)
        metrics = compute_metrics(y_test, y_pred)
        metrics["train_time_sec"] = train_time
        metrics["n_support"] = int(svc.n_support_.sum())
        mlflow.log_metrics(metrics)

    return y_pred, metrics


def train_kernel_svm(name, params, X_train, y_train, X_test, y_test):
    """Обучает OneVsOneKernelSVM и логирует параметры, метрики и модель."""
    with mlflow.start_run(run_name=f"SMO_OvO_{name}"):
        mlflow.log_param("classifier", "OneVsOneKernelSVM")
        mlflow.log_param("kernel", name)
        for key, value in params.items():
            mlflow.log_param(f"kernel_{key}", value)
        for key in ["C", "tol", "max_iter", "max_passes", "support_selector", "decision_threshold", "use_scaler"]:
            mlflow.log_param(key, CONFIG[key])

        model = OneVsOneKernelSVM(
            num_classes=CONFIG["n_classes"],
            C=CONFIG["C"],
            kernel=make_kernel(name, **params),
            tol=CONFIG["tol"],
            max_iter=CONFIG["max_iter"],
            max_passes=CONFIG["max_passes"],
            support_selector=CONFIG["support_selector"],
            decision_threshold=CONFIG["decision_threshold"],
            random_state=CONFIG["random_state"],
            verbose=True
        )

        start = time.perf_counter()
        model.fit(X_train, y_train)
        train_time = time.perf_counter() - start

        y_pred = model.predict(X_test)
        metrics = compute_metrics(y_test, y_pred)
        metrics["train_time_sec"] = train_time
        metrics["n_support"] = sum(clf.n_support_ for clf in model.estimators_)
        metrics["smo_passes_total"] = sum(clf.result_.n_passes for clf in model.estimators_)
        metrics["n_not_converged"] = sum(not clf.result_.converged for clf in model.estimators_)
        mlflow.log_metrics(metrics)

        # Сохраняем модель
        model_path = model.save(os.path.join(CONFIG["artifacts_dir"], f"kernel_svm_{name}.npz"))
        mlflow.log_artifact(model_path)

        report_path = os.path.join(CONFIG["artifacts_dir"], f"classification_report_{name}.txt")
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(f"Kernel: {name} {params}\n")
            f.write(f"Pairs: {model.pairs_}\n\n")
            f.write(classification_report(y_test, y_pred, zero_division=0))
        mlflow.log_artifact(report_path)

    return y_pred, metrics


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("Start Benchmark: Kernel SVM (simplified SMO) vs sklearn SVC")
    print("=" * 60)
    print(f"  C = {CONFIG['C']}, tol = {CONFIG['tol']}, max_iter = {CONFIG['max_iter']}")
    print(f"  support_selector = {CONFIG['support_selector']}")
    print(f"  decision_threshold = {CONFIG['decision_threshold']}")
    print(f"  MLflow: {os.environ['MLFLOW_TRACKING_URI']}")
    print("=" * 60)

    X_train, X_test, y_train, y_test = load_data()
    print(f"Train: {X_train.shape}, Test: {X_test.shape}, classes: {CONFIG['n_classes']}")

    mlflow.set_experiment(CONFIG["experiment_name"])
    all_results = {}

    for name, params in tqdm(CONFIG["kernels"].items(), desc="Kernels"):
        print(f"\n{'='*40}")
        print(f"Kernel: {name} {params}")
        print(f"{'='*40}")

        y_pred, metrics = train_kernel_svm(name, params, X_train, y_train, X_test, y_test)
        all_results[f"SMO_{name}"] = metrics
        print(f"  SMO: accuracy={metrics['accuracy']:.4f}, F1_macro={metrics['f1_macro']:.4f}, "
              f"time={metrics['train_time_sec']:.2f}s")

        if CONFIG["run_sklearn_baseline"]:
            svc_pred, svc_metrics = train_sklearn_baseline(name, params, X_train, y_train, X_test, y_test)
            all_results[f"SVC_{name}"] = svc_metrics
            agreement = float(np.mean(y_pred == svc_pred))
            print(f"  SVC: accuracy={svc_metrics['accuracy']:.4f}, F1_macro={svc_metrics['f1_macro']:.4f}, "
                  f"time={svc_metrics['train_time_sec']:.2f}s")
            print(f"  Agreement with SVC: {agreement:.2%}")
            logger.info("Kernel %s: agreement with SVC %.4f", name, agreement)

    print("\n" + "=" * 80)
    print("FINAL RESULTS")
    print("=" * 80)
    print(f"{'Model':<25} {'Accuracy':>10} {'F1_macro':>10} {'Time, s':>10} {'SV':>8}")
    for key, m in all_results.items():
        print(f"{key:<25} {m['accuracy']:>10.4f} {m['f1_macro']:>10.4f} "
              f"{m['train_time_sec']:>10.2f} {m['n_support']:>8}")


if __name__ == "__main__":
    main()
