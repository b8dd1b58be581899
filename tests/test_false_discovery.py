"""
Tests for precision / false discovery rate among significant strategies.
"""

import numpy as np
import pytest

from overfitting.errors import InvalidProbabilityError
from overfitting.false_discovery import false_discovery_rate, precision, precision_table


class TestPrecision:

    def test_rare_edges_mostly_false_discoveries(self):
        # 1 in 100 ideas real, power 80%, alpha 5%
        assert precision(0.01, power=0.8, alpha=0.05) == pytest.approx(0.008 / (0.008 + 0.0495))
        assert false_discovery_rate(0.01) > 0.8

    def test_fdr_complements_precision(self):
        for prior in [0.01, 0.1, 0.5, 0.9]:
            assert precision(prior) + false_discovery_rate(prior) == pytest.approx(1.0)

    def test_certain_prior(self):
        assert precision(1.0) == 1.0
        assert false_discovery_rate(1.0) == 0.0

    def test_stricter_alpha_improves_precision(self):
        assert precision(0.05, alpha=0.01) > precision(0.05, alpha=0.05)

    @pytest.mark.parametrize('kwargs', [
        {'prior': 0.0},
        {'prior': 1.2},
        {'prior': 0.1, 'power': 0.0},
        {'prior': 0.1, 'alpha': -0.05},
        {'prior': float('nan')},
    ])
    def test_invalid_probabilities(self, kwargs):
        with pytest.raises(InvalidProbabilityError):
            precision(**kwargs)


class TestPrecisionTable:

    def test_table_shape_and_monotonicity(self):
        table = precision_table(np.linspace(0.01, 0.5, 50), power=0.8, alpha=0.05)

        assert list(table.columns) == ['prior', 'precision', 'false_discovery_rate']
        assert len(table) == 50
        assert table['precision'].is_monotonic_increasing
        assert np.allclose(table['precision'] + table['false_discovery_rate'], 1.0)

    def test_invalid_prior_in_table(self):
        with pytest.raises(InvalidProbabilityError) as exc:
            precision_table([0.1, 0.0])
        assert exc.value.details == {'name': 'prior', 'value': 0.0}
