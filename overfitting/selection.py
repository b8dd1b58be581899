"""
Strategy Selection Analysis

Runs the full chain for "I tested many strategies and kept the best one":

    return matrix -> effective trials + clusters
                  -> cross-sectional Sharpe variance (cluster portfolios)
                  -> DSR of the best strategy

This is the main function to call after a parameter sweep.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable

import pandas as pd

from .deflated_sharpe import DSR_ASSUMPTIONS, DSRResult, compute_dsr, sharpe_ratio
from .effective_trials import (
    DEFAULT_K_CANDIDATES,
    EFFECTIVE_TRIALS_ASSUMPTIONS,
    MatrixLike,
    as_return_frame,
    cluster_trials,
    cross_sectional_sr_variance,
)
from .errors import InvalidTrialCountError

logger = logging.getLogger(__name__)


def get_assumptions() -> Dict[str, Dict]:
    """Return the modeling assumptions behind each analysis."""
    return {
        'deflated_sharpe': DSR_ASSUMPTIONS,
        'effective_trials': EFFECTIVE_TRIALS_ASSUMPTIONS
    }


@dataclass(frozen=True)
class SelectionAnalysis:
    """Result of analyze_strategy_selection()."""
    best_strategy: Hashable
    k_effective: int
    clusters: pd.Series
    silhouette_scores: pd.Series
    sr_variance: float
    dsr: DSRResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'best_strategy': self.best_strategy,
            'k_effective': self.k_effective,
            'clusters': self.clusters.to_dict(),
            'silhouette_scores': self.silhouette_scores.to_dict(),
            'sr_variance': self.sr_variance,
            'dsr': self.dsr.to_dict()
        }


def analyze_strategy_selection(
    returns_matrix: MatrixLike,
    k_candidates: Iterable[int] = DEFAULT_K_CANDIDATES,
    mean_sr: float = 0.0
) -> SelectionAnalysis:
    """
    Deflate the Sharpe ratio of the best strategy among many candidates.

    Args:
        returns_matrix: Periods x strategies, every candidate that was tried
        k_candidates: Cluster counts to consider when estimating K_eff
        mean_sr: Mean Sharpe ratio across trials under the null

    Returns:
        SelectionAnalysis with the selected strategy and its DSRResult

    Raises:
        InvalidTrialCountError: all candidates collapse into a single trial
        (plus any error from the individual steps)
    """
    frame = as_return_frame(returns_matrix)

    clustering = cluster_trials(frame, k_candidates)
    if clustering.k_effective <= 1:
        raise InvalidTrialCountError(
            f"All {frame.shape[1]} strategies collapse into one effective trial; "
            "there is no selection to deflate",
            k_effective=clustering.k_effective
        )
    sr_variance = cross_sectional_sr_variance(frame, clustering.clusters)

    sharpes = pd.Series({col: sharpe_ratio(frame[col]) for col in frame.columns})
    # idxmax keeps the first column on ties
    best = sharpes.idxmax()

    dsr = compute_dsr(frame[best], clustering.k_effective, mean_sr=mean_sr, sr_variance=sr_variance)

    logger.info(
        "Selected %s of %d strategies: SR=%.4f, K_eff=%d, DSR=%.4f",
        best, frame.shape[1], dsr.sharpe_ratio, clustering.k_effective, dsr.deflated_sharpe_ratio
    )

    return SelectionAnalysis(
        best_strategy=best,
        k_effective=clustering.k_effective,
        clusters=clustering.clusters,
        silhouette_scores=clustering.silhouette_scores,
        sr_variance=sr_variance,
        dsr=dsr
    )
