"""
False Discoveries Among "Significant" Strategies

Passing a 5% significance test does not mean a 95% chance the strategy is
real. If only a small share of the ideas you test have a genuine edge, most
of the strategies that pass are false positives.

    precision = p * power / (p * power + (1 - p) * alpha)
    FDR       = 1 - precision

where p is the prior probability that a tested strategy is real.

Example: 1 in 100 ideas is real, power 80%, alpha 5%:
    precision = 0.008 / (0.008 + 0.0495) = 14%
so 86% of the "discoveries" are noise.

References:
- Harvey, Liu & Zhu (2016) - "...and the Cross-Section of Expected Returns"
- Ioannidis (2005) - "Why Most Published Research Findings Are False"
"""

from typing import Iterable

import numpy as np
import pandas as pd

from .errors import InvalidProbabilityError


def _check_probability(name: str, value: float) -> None:
    if not 0 < value <= 1:
        raise InvalidProbabilityError(
            f"{name} must be in (0, 1], got {value}",
            name=name, value=value
        )


def precision(prior: float, power: float = 0.8, alpha: float = 0.05) -> float:
    """
    Share of strategies passing the test that have a genuine edge.

    Args:
        prior: Probability that a tested strategy is real
        power: Probability a real strategy passes the test (1 - beta)
        alpha: Probability a false strategy passes the test

    Returns:
        Precision (positive predictive value) in [0, 1]
    """
    _check_probability('prior', prior)
    _check_probability('power', power)
    _check_probability('alpha', alpha)

    true_positives = prior * power
    false_positives = (1 - prior) * alpha
    return float(true_positives / (true_positives + false_positives))


def false_discovery_rate(prior: float, power: float = 0.8, alpha: float = 0.05) -> float:
    """Share of strategies passing the test that are false positives."""
    return 1.0 - precision(prior, power, alpha)


def precision_table(
    priors: Iterable[float],
    power: float = 0.8,
    alpha: float = 0.05
) -> pd.DataFrame:
    """
    Precision and FDR across a range of priors, the data behind a
    precision-vs-prior chart.

    Example:
        >>> precision_table(np.linspace(0.01, 0.5, 50), power=0.8, alpha=0.05)
    """
    priors = np.asarray(list(priors), dtype=float)
    rows = [
        {
            'prior': p,
            'precision': precision(p, power, alpha),
            'false_discovery_rate': false_discovery_rate(p, power, alpha)
        }
        for p in priors
    ]
    return pd.DataFrame(rows, columns=['prior', 'precision', 'false_discovery_rate'])
