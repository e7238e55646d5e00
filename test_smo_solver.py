"""
Тесты для упрощённого SMO солвера.

Проверяет:
1. Проверку гиперпараметров
2. Вспомогательные функции: границы L/H, ошибку E_i, KKT, смещение b
3. Известное аналитическое решение на двух точках
4. Box-ограничения 0 ≤ α ≤ C
5. Воспроизводимость при фиксированном seed
6. Жёсткий предел числа проходов и вырожденную матрицу ядра
"""

import numpy as np
import pytest
from sklearn.exceptions import ConvergenceWarning

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ksvm import InvalidInputError, LinearKernel, kernel_matrix
from ksvm.smo_solver import (
    SimplifiedSMOSolver,
    compute_bounds,
    compute_bias,
    margin_error,
    violates_kkt,
    check_random_state,
)


# =============================================================================
# Вспомогательные функции
# =============================================================================

def create_overlapping_data(n_samples=60, seed=0):
    """Два пересекающихся облака - задача не разделима, часть α упирается в C."""
    rng = np.random.default_rng(seed)
    n_half = n_samples // 2
    X = np.vstack([
        rng.normal(loc=[0.0, 0.0], scale=1.5, size=(n_half, 2)),
        rng.normal(loc=[1.5, 1.5], scale=1.5, size=(n_half, 2)),
    ])
    y = np.array([-1.0] * n_half + [1.0] * n_half)
    return X, y


# =============================================================================
# Тесты вспомогательных функций
# =============================================================================

def test_solver_initialization():
    """Тест инициализации солвера и проверка параметров."""
    print("\n" + "="*60)
    print("Test: Solver Initialization")
    print("="*60)

    solver = SimplifiedSMOSolver(C=2.0, tol=1e-4, max_iter=5, max_passes=100)
    assert solver.C == 2.0
    assert solver.tol == 1e-4
    assert solver.max_iter == 5
    assert solver.max_passes == 100

    for bad in [dict(C=0.0), dict(C=-1.0), dict(tol=0.0), dict(max_iter=0), dict(max_passes=0)]:
        with pytest.raises(InvalidInputError):
            SimplifiedSMOSolver(**bad)
        print(f"  Correctly rejected {bad}")

    print("\n[PASS] Solver initialization test passed!")


def test_compute_bounds():
    """Границы L, H для одинаковых и разных меток."""
    # y_i == y_j: L = max(0, α_i + α_j - C), H = min(C, α_i + α_j)
    L, H = compute_bounds(0.3, 0.5, 1.0, 1.0, 1.0)
    assert L == pytest.approx(0.0)
    assert H == pytest.approx(0.8)

    L, H = compute_bounds(0.7, 0.6, -1.0, -1.0, 1.0)
    assert L == pytest.approx(0.3)
    assert H == pytest.approx(1.0)

    # y_i != y_j: L = max(0, α_j - α_i), H = min(C, C + α_j - α_i)
    L, H = compute_bounds(0.3, 0.5, 1.0, -1.0, 1.0)
    assert L == pytest.approx(0.2)
    assert H == pytest.approx(1.0)

    L, H = compute_bounds(0.5, 0.3, -1.0, 1.0, 1.0)
    assert L == pytest.approx(0.0)
    assert H == pytest.approx(0.8)


def test_margin_error():
    """E_i = b + Σ α_k y_k K[k, i] - y_i"""
    K = np.array([[4.0, -4.0], [-4.0, 4.0]])
    y = np.array([1.0, -1.0])

    alpha = np.zeros(2)
    assert margin_error(K, alpha, y, 0.5, 0) == pytest.approx(-0.5)
    assert margin_error(K, alpha, y, 0.5, 1) == pytest.approx(1.5)

    alpha = np.array([0.125, 0.125])
    assert margin_error(K, alpha, y, 0.0, 0) == pytest.approx(0.0)
    assert margin_error(K, alpha, y, 0.0, 1) == pytest.approx(0.0)


def test_violates_kkt():
    C, tol = 1.0, 1e-3
    # y·E < -tol и α < C
    assert violates_kkt(1.0, -0.5, 0.0, C, tol)
    assert not violates_kkt(1.0, -0.5, C, C, tol)
    # y·E > tol и α > 0
    assert violates_kkt(-1.0, -0.5, 0.3, C, tol)
    assert not violates_kkt(-1.0, -0.5, 0.0, C, tol)
    # внутри допуска
    assert not violates_kkt(1.0, 5e-4, 0.5, C, tol)


def test_compute_bias():
    """Выбор b1 / b2 / среднего по положению α."""
    args = dict(b=0.0, E_i=1.0, E_j=-1.0, y_i=1.0, y_j=-1.0,
                delta_i=0.0, delta_j=0.0, K_ii=1.0, K_ij=0.0, K_jj=1.0, C=1.0)
    # b1 = -E_i = -1, b2 = -E_j = 1
    assert compute_bias(alpha_i=0.5, alpha_j=0.0, **args) == pytest.approx(-1.0)
    assert compute_bias(alpha_i=0.0, alpha_j=0.5, **args) == pytest.approx(1.0)
    assert compute_bias(alpha_i=1.0, alpha_j=0.0, **args) == pytest.approx(0.0)


def test_check_random_state():
    rng = np.random.default_rng(3)
    assert check_random_state(rng) is rng
    a = check_random_state(7).integers(0, 1000, size=5)
    b = check_random_state(7).integers(0, 1000, size=5)
    assert np.array_equal(a, b)


# =============================================================================
# Интеграционные тесты
# =============================================================================

def test_known_solution():
    """Тест на данных с известным решением: две точки, α = 1/8, b = 0."""
    print("\n" + "="*60)
    print("Test: Known Solution")
    print("="*60)

    X = np.array([[2.0, 0.0], [-2.0, 0.0]], dtype=np.float64)
    y = np.array([1.0, -1.0])
    K = kernel_matrix(LinearKernel(), X)

    solver = SimplifiedSMOSolver(C=10.0, tol=1e-6, max_iter=3, random_state=0)
    result = solver.solve(K, y)

    print(f"  alpha = {result.alpha}")
    print(f"  b = {result.b:.6f}")
    print(f"  passes = {result.n_passes}, updates = {result.n_updates}")

    assert np.allclose(result.alpha, [0.125, 0.125])
    assert result.b == pytest.approx(0.0)
    assert result.converged
    assert result.n_updates == 1
    # Один проход с обновлением + max_iter проходов без изменений
    assert result.n_passes == 1 + 3
    assert result.n_nonzero == 2
    # Σ α_i y_i = 0
    assert np.sum(result.alpha * y) == pytest.approx(0.0)

    print("\n[PASS] Known solution test passed!")


def test_box_constraints():
    """0 ≤ α_i ≤ C на неразделимых данных."""
    print("\n" + "="*60)
    print("Test: Box Constraints")
    print("="*60)

    X, y = create_overlapping_data()
    K = kernel_matrix(LinearKernel(), X)

    for C in [0.1, 1.0]:
        result = SimplifiedSMOSolver(C=C, tol=1e-3, max_iter=5, random_state=1).solve(K, y)
        n_at_upper = int(np.sum(result.alpha >= C))
        print(f"  C={C}: nonzero={result.n_nonzero}, at C={n_at_upper}, passes={result.n_passes}")
        assert np.all(result.alpha >= 0.0)
        assert np.all(result.alpha <= C)
        assert result.n_nonzero >= 2

    print("\n[PASS] Box constraints test passed!")


def test_seeded_determinism():
    """Одинаковый seed - одинаковая траектория."""
    X, y = create_overlapping_data(seed=5)
    K = kernel_matrix(LinearKernel(), X)

    r1 = SimplifiedSMOSolver(C=1.0, random_state=42).solve(K, y)
    r2 = SimplifiedSMOSolver(C=1.0, random_state=42).solve(K, y)

    assert np.array_equal(r1.alpha, r2.alpha)
    assert r1.b == r2.b
    assert r1.n_passes == r2.n_passes
    assert r1.n_updates == r2.n_updates


def test_injected_generator():
    """Генератор, переданный в solve, переопределяет random_state."""
    X, y = create_overlapping_data(seed=9)
    K = kernel_matrix(LinearKernel(), X)
    solver = SimplifiedSMOSolver(C=1.0, random_state=123)

    r1 = solver.solve(K, y, rng=np.random.default_rng(11))
    r2 = solver.solve(K, y, rng=np.random.default_rng(11))
    assert np.array_equal(r1.alpha, r2.alpha)


def test_pass_cap():
    """Жёсткий предел проходов: остановка с ConvergenceWarning."""
    X, y = create_overlapping_data()
    K = kernel_matrix(LinearKernel(), X)

    solver = SimplifiedSMOSolver(C=1.0, max_iter=5, max_passes=1, random_state=0)
    with pytest.warns(ConvergenceWarning):
        result = solver.solve(K, y)

    assert result.n_passes == 1
    assert not result.converged


def test_degenerate_kernel_matrix():
    """Постоянная матрица ядра: η = 0 для всех пар, α остаются нулевыми."""
    n = 6
    K = np.ones((n, n))
    y = np.array([1.0, -1.0] * 3)

    result = SimplifiedSMOSolver(C=1.0, max_iter=2, random_state=0).solve(K, y)

    assert result.converged
    assert result.n_updates == 0
    assert result.n_nonzero == 0
    assert result.n_passes == 2


def test_invalid_shapes():
    solver = SimplifiedSMOSolver()
    with pytest.raises(InvalidInputError):
        solver.solve(np.ones((3, 3)), np.array([1.0, -1.0]))
    with pytest.raises(InvalidInputError):
        solver.solve(np.ones((1, 1)), np.array([1.0]))


def run_all_tests():
    """Запуск всех тестов."""
    print("\n" + "="*70)
    print("  Simplified SMO Solver Test Suite")
    print("="*70)

    tests = [
        ("Solver Initialization", test_solver_initialization),
        ("Compute Bounds", test_compute_bounds),
        ("Margin Error", test_margin_error),
        ("KKT Violation", test_violates_kkt),
        ("Compute Bias", test_compute_bias),
        ("Random State", test_check_random_state),
        ("Known Solution", test_known_solution),
        ("Box Constraints", test_box_constraints),
        ("Seeded Determinism", test_seeded_determinism),
        ("Injected Generator", test_injected_generator),
        ("Pass Cap", test_pass_cap),
        ("Degenerate Kernel Matrix", test_degenerate_kernel_matrix),
        ("Invalid Shapes", test_invalid_shapes),
    ]

    passed = 0
    failed = 0

    for name, test_func in tests:
        try:
            test_func()
            passed += 1
            print(f"  [✓] {name}")
        except AssertionError as e:
            failed += 1
            print(f"  [✗] {name}: {e}")

    print(f"\nTotal: {passed} passed, {failed} failed")
    return passed, failed


if __name__ == "__main__":
    run_all_tests()
