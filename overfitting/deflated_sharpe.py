"""
Deflated Sharpe Ratio (DSR)

The Problem:
The Sharpe ratio of the strategy kept as the best of many backtests is the
maximum of many noisy estimates. It overstates what the strategy will earn
out of sample, even when no candidate has any real edge.

The Solution:
The Deflated Sharpe Ratio is the probability that the observed Sharpe ratio
beats the best Sharpe ratio luck alone would produce over K_eff independent
trials, after correcting for skewness, fat tails and sample length.

    E[max SR] = mean_sr + sqrt(V) * [(1-g)*Phi^-1(1 - 1/K) + g*Phi^-1(1 - 1/(K*e))]
    DSR       = Phi( (SR - E[max SR]) * sqrt(n-1) / sqrt(1 - skew*SR + (kurt/4)*SR^2) )

g is the Euler-Mascheroni constant, kurt is EXCESS kurtosis, V is the variance
of Sharpe ratios across trials.

References:
- Bailey & Lopez de Prado (2014) - "The Deflated Sharpe Ratio"
- Bailey & Lopez de Prado (2012) - "The Sharpe Ratio Efficient Frontier"

Reading the result:
The same observed Sharpe ratio deflates further as K_eff grows. A DSR near 1
survives the search that produced it; a DSR near 0.5 or below is what the
best of K_eff unskilled strategies would look like anyway.
"""

import logging
import math
import warnings
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from .errors import (
    DegenerateVarianceError,
    InsufficientDataError,
    InvalidProbabilityError,
    InvalidReturnsError,
    InvalidTrialCountError,
    UndefinedSharpeRatioError,
)

logger = logging.getLogger(__name__)

ReturnsLike = Union[pd.Series, np.ndarray, Sequence[float]]

EULER_MASCHERONI = 0.5772156649015329

# Stand-in for the cross-sectional variance of trial Sharpe ratios.
# Only meant for examples and tests; see cross_sectional_sr_variance().
PLACEHOLDER_SR_VARIANCE = 1.0


# =============================================================================
# ASSUMPTIONS
# =============================================================================

DSR_ASSUMPTIONS = {
    'name': 'Deflated Sharpe Ratio',
    'assumes': [
        'Only the first four moments of returns matter (no autocorrelation term)',
        'The K_eff trials are independent; correlated trials are clustered first',
        'Trial Sharpe ratios are spread around mean_sr with variance sr_variance'
    ],
    'conventions': [
        'Per-period Sharpe ratio (not annualized), zero risk-free rate',
        'Biased estimators (divide by n) for std, skewness and kurtosis',
        'Excess kurtosis in the kurt/4 * SR^2 term'
    ],
    'does_not_account_for': [
        'Look-ahead or survivorship bias inside the backtest itself',
        'Serial correlation of returns'
    ],
    'reference': 'Bailey & Lopez de Prado (2014) - The Deflated Sharpe Ratio'
}


class PlaceholderVarianceWarning(UserWarning):
    """compute_dsr() fell back to PLACEHOLDER_SR_VARIANCE."""


@dataclass(frozen=True)
class ReturnMoments:
    """First four moments of a return series, biased estimators."""
    n_observations: int
    mean: float
    std: float
    sharpe_ratio: float
    skewness: float
    excess_kurtosis: float


@dataclass(frozen=True)
class DSRResult:
    """Output of compute_dsr()."""
    sharpe_ratio: float
    expected_max_sharpe_ratio: float
    deflated_sharpe_ratio: float
    n_observations: int
    skewness: float
    excess_kurtosis: float
    k_effective: float
    sr_variance: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# SAMPLE MOMENTS
# =============================================================================

def as_return_array(returns: ReturnsLike) -> np.ndarray:
    """Validate a single return series and return it as a float array."""
    values = np.asarray(returns, dtype=float)
    if values.ndim != 1:
        raise InvalidReturnsError(
            f"Expected a 1-D return series, got {values.ndim} dimensions",
            {'shape': values.shape}
        )
    finite = np.isfinite(values)
    if not finite.all():
        raise InvalidReturnsError(
            "Return series contains NaN or infinite values",
            {'n_non_finite': int((~finite).sum())}
        )
    return values


def return_moments(returns: ReturnsLike) -> ReturnMoments:
    """
    Compute the moments the DSR formula needs.

    Args:
        returns: Periodic returns, oldest first, no missing values

    Returns:
        ReturnMoments with mean, std, Sharpe ratio, skewness and excess kurtosis

    Raises:
        InsufficientDataError: fewer than 2 observations
        UndefinedSharpeRatioError: the series is constant
    """
    r = as_return_array(returns)
    n = len(r)
    if n < 2:
        raise InsufficientDataError(
            f"Need at least 2 observations for a Sharpe ratio, got {n}",
            available=n, required=2
        )

    mean = float(np.mean(r))
    std = float(np.std(r))

    # Range check: the mean of a constant series can carry rounding residue
    if np.ptp(r) == 0 or std == 0:
        raise UndefinedSharpeRatioError(
            "Return series has zero standard deviation; Sharpe ratio is undefined",
            {'n_observations': n, 'value': float(r[0])}
        )

    return ReturnMoments(
        n_observations=n,
        mean=mean,
        std=std,
        sharpe_ratio=mean / std,
        skewness=float(stats.skew(r, bias=True)),
        excess_kurtosis=float(stats.kurtosis(r, fisher=True, bias=True))
    )


def sharpe_ratio(returns: ReturnsLike) -> float:
    """Per-period Sharpe ratio (mean / biased std), zero risk-free rate."""
    return return_moments(returns).sharpe_ratio


# =============================================================================
# DEFLATION
# =============================================================================

def expected_max_sharpe(
    k_effective: float,
    mean_sr: float = 0.0,
    sr_variance: float = PLACEHOLDER_SR_VARIANCE
) -> float:
    """
    Expected maximum Sharpe ratio among K_eff independent trials with no skill.

    This is the bar a strategy has to clear: what the "best" Sharpe would
    be after testing K_eff strategies that are all pure noise.

    Args:
        k_effective: Effective number of independent trials (must be > 1)
        mean_sr: Mean Sharpe ratio across trials under the null
        sr_variance: Variance of Sharpe ratios across trials

    Returns:
        E[max SR]; strictly increasing in k_effective when sr_variance > 0
    """
    if not np.isfinite(k_effective) or k_effective <= 1:
        raise InvalidTrialCountError(
            f"Expected maximum needs more than one trial, got K_eff={k_effective}",
            k_effective=k_effective
        )
    if not np.isfinite(sr_variance) or sr_variance < 0:
        raise DegenerateVarianceError(
            f"Sharpe ratio variance must be a finite non-negative number, got {sr_variance}",
            {'sr_variance': sr_variance}
        )

    gamma = EULER_MASCHERONI
    e_max = (1 - gamma) * stats.norm.ppf(1 - 1 / k_effective) + \
        gamma * stats.norm.ppf(1 - 1 / (k_effective * np.e))

    return float(mean_sr + np.sqrt(sr_variance) * e_max)


def _sharpe_variance_term(moments: ReturnMoments) -> float:
    """1 - skew*SR + (kurt/4)*SR^2, which must be positive."""
    sr = moments.sharpe_ratio
    radicand = 1 - moments.skewness * sr + (moments.excess_kurtosis / 4) * sr ** 2
    if radicand <= 0:
        raise DegenerateVarianceError(
            f"Sharpe ratio variance term is not positive ({radicand:.6g}) "
            f"for SR={sr:.4f}, skew={moments.skewness:.4f}, kurt={moments.excess_kurtosis:.4f}",
            {
                'radicand': radicand,
                'sharpe_ratio': sr,
                'skewness': moments.skewness,
                'excess_kurtosis': moments.excess_kurtosis
            }
        )
    return radicand


def _sharpe_z_score(moments: ReturnMoments, benchmark_sr: float) -> float:
    radicand = _sharpe_variance_term(moments)
    return (moments.sharpe_ratio - benchmark_sr) * np.sqrt(moments.n_observations - 1) / np.sqrt(radicand)


def probabilistic_sharpe_ratio(returns: ReturnsLike, benchmark_sr: float = 0.0) -> float:
    """
    Probability that the true Sharpe ratio exceeds ``benchmark_sr``.

    Same statistic as the DSR, but against a fixed benchmark instead of the
    expected maximum over many trials. With benchmark_sr=0 this is the
    "non-deflated" significance of the Sharpe ratio.
    """
    moments = return_moments(returns)
    return float(stats.norm.cdf(_sharpe_z_score(moments, benchmark_sr)))


def compute_dsr(
    returns: ReturnsLike,
    k_effective: float,
    mean_sr: float = 0.0,
    sr_variance: Optional[float] = None
) -> DSRResult:
    """
    Calculate the Deflated Sharpe Ratio of one strategy.

    The result is the probability that the true Sharpe ratio exceeds the
    expected maximum of K_eff skill-less trials.

    Args:
        returns: Periodic returns of the selected strategy
        k_effective: Effective number of independent trials (> 1), e.g. from
                     estimate_effective_trials()
        mean_sr: Mean Sharpe ratio across trials under the null
        sr_variance: Variance of Sharpe ratios across trials. If None, the
                     placeholder 1.0 is used and a PlaceholderVarianceWarning
                     is emitted; pass cross_sectional_sr_variance(...) instead.

    Returns:
        DSRResult; deflated_sharpe_ratio is in [0, 1]

    Raises:
        InsufficientDataError, UndefinedSharpeRatioError,
        InvalidTrialCountError, DegenerateVarianceError

    Example:
        >>> result = compute_dsr(returns, k_effective=8, sr_variance=0.02)
        >>> if result.deflated_sharpe_ratio < 0.5:
        ...     print("Sharpe ratio does not survive deflation")
    """
    if sr_variance is None:
        warnings.warn(
            f"sr_variance not supplied, using placeholder {PLACEHOLDER_SR_VARIANCE}. "
            "Estimate it with cross_sectional_sr_variance() for real analyses.",
            PlaceholderVarianceWarning,
            stacklevel=2
        )
        sr_variance = PLACEHOLDER_SR_VARIANCE

    moments = return_moments(returns)
    e_max = expected_max_sharpe(k_effective, mean_sr, sr_variance)
    dsr = float(stats.norm.cdf(_sharpe_z_score(moments, e_max)))

    logger.debug(
        "DSR: n=%d SR=%.4f skew=%.4f kurt=%.4f K_eff=%s E[max SR]=%.4f DSR=%.4f",
        moments.n_observations, moments.sharpe_ratio, moments.skewness,
        moments.excess_kurtosis, k_effective, e_max, dsr
    )

    return DSRResult(
        sharpe_ratio=moments.sharpe_ratio,
        expected_max_sharpe_ratio=e_max,
        deflated_sharpe_ratio=dsr,
        n_observations=moments.n_observations,
        skewness=moments.skewness,
        excess_kurtosis=moments.excess_kurtosis,
        k_effective=k_effective,
        sr_variance=sr_variance
    )


def minimum_track_record_length(
    returns: ReturnsLike,
    benchmark_sr: float = 0.0,
    confidence: float = 0.95
) -> float:
    """
    Number of observations needed before the Sharpe ratio is significant.

    Uses the same non-normality adjustment as the DSR:
        MinTRL = 1 + (1 - skew*SR + (kurt/4)*SR^2) * (Phi^-1(confidence) / (SR - SR*))^2

    Pass the expected maximum Sharpe ratio as ``benchmark_sr`` to get the
    track record needed to survive deflation.

    Returns:
        Minimum number of observations; math.inf if SR <= benchmark_sr
    """
    if not 0 < confidence < 1:
        raise InvalidProbabilityError(
            f"confidence must be in (0, 1), got {confidence}",
            name='confidence', value=confidence
        )

    moments = return_moments(returns)
    sr = moments.sharpe_ratio
    if sr <= benchmark_sr:
        return math.inf

    radicand = _sharpe_variance_term(moments)
    z = stats.norm.ppf(confidence)
    return float(1 + radicand * (z / (sr - benchmark_sr)) ** 2)
