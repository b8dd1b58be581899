"""
Shared fixtures: seeded return series and strategy return matrices.
"""

import numpy as np
import pandas as pd
import pytest


def standardize(x, mean, std):
    """Rescale x to an exact mean and (biased) standard deviation."""
    z = (x - x.mean()) / x.std()
    return mean + std * z


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def daily_returns(rng):
    """Two years of daily returns, per-period Sharpe ratio exactly 0.08."""
    return pd.Series(standardize(rng.normal(size=504), 0.0008, 0.01), name='strategy')


@pytest.fixture
def one_year_returns(rng):
    """252 daily returns with mean exactly 0.001 and std exactly 0.01."""
    return standardize(rng.normal(size=252), 0.001, 0.01)


@pytest.fixture
def block_returns(rng):
    """
    Twelve strategies built on three independent factors (four near-copies
    each). Only the 'trend' factor has a positive drift.
    """
    n = 750
    drifts = {'trend': 0.002, 'carry': 0.0, 'value': 0.0}
    columns = {}
    for family, drift in drifts.items():
        factor = rng.normal(drift, 0.01, n)
        for i in range(4):
            columns[f'{family}_{i}'] = factor + rng.normal(0, 0.001, n)
    return pd.DataFrame(columns)


@pytest.fixture
def identical_returns(rng):
    """Four strategies that are exact (possibly mirrored) linear copies of one series."""
    base = rng.normal(0.0005, 0.01, 300)
    return pd.DataFrame({
        'a': base,
        'b': 2 * base + 0.001,
        'c': -base,
        'd': 0.5 * base - 0.002
    })


@pytest.fixture
def orthogonal_returns(rng):
    """Six strategies with exactly zero sample correlation."""
    x = rng.normal(size=(200, 6))
    x -= x.mean(axis=0)
    q, _ = np.linalg.qr(x)
    return pd.DataFrame(0.01 * q * np.sqrt(200), columns=[f's{i}' for i in range(6)])


@pytest.fixture
def independent_returns():
    """Eight independently drawn strategies: small, non-zero sample correlations."""
    draws = np.random.default_rng(0).normal(0, 0.01, size=(1000, 8))
    return pd.DataFrame(draws, columns=[f'ind_{i}' for i in range(8)])


@pytest.fixture
def near_copy_returns(rng):
    """Eight noisy copies of one series, pairwise correlation about 0.998."""
    base = rng.normal(0.0005, 0.01, 1000)
    return pd.DataFrame({f'copy_{i}': base + rng.normal(0, 0.0005, 1000) for i in range(8)})
