"""
Effective Number of Trials

The Problem:
The DSR needs K, the number of independent strategies tried. Counting every
parameter combination overstates K: a 20-day and a 21-day moving average
crossover are practically the same trial. Counting only strategy families
understates it.

The Solution:
Cluster the candidate return series on correlation and count the clusters.

1. Pearson correlation C between strategy columns
2. Distance d(i, j) = 1 - |C(i, j)|
3. Complete-linkage agglomerative clustering on d
4. Pick the number of clusters k with the highest average silhouette width
5. K_eff = k

When even the best silhouette is weak there are no clusters to count: the
strategies are either all redundant (K_eff = 1) or all distinct (K_eff is
the largest candidate k), decided by their mean distance.

Strongly NEGATIVELY correlated strategies end up close together: a strategy
and its mirror image are not two independent trials.

References:
- Lopez de Prado (2018) - "Detection of False Investment Strategies Using
  Unsupervised Learning Methods"
- Rousseeuw (1987) - "Silhouettes: a graphical aid to the interpretation and
  validation of cluster analysis"
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import cut_tree
from sklearn.metrics import silhouette_score

from .deflated_sharpe import sharpe_ratio
from .errors import InsufficientDataError, InvalidReturnsError, InvalidTrialCountError

logger = logging.getLogger(__name__)

MatrixLike = Union[pd.DataFrame, np.ndarray]

DEFAULT_K_CANDIDATES = range(2, 16)

# Largest off-diagonal distance at which all strategies count as one trial
IDENTICAL_DISTANCE_TOL = 1e-8

# Silhouette scores closer than this are tied; ties go to the larger k
SILHOUETTE_TIE_TOL = 1e-12

# Best average silhouette below this means the strategies form no clusters
MIN_SILHOUETTE = 0.1

# Without clusters, a mean off-diagonal distance below this (|corr| above 0.5)
# makes the strategies one trial; otherwise every strategy is its own trial
REDUNDANT_DISTANCE = 0.5


# =============================================================================
# ASSUMPTIONS
# =============================================================================

EFFECTIVE_TRIALS_ASSUMPTIONS = {
    'name': 'Effective Number of Trials (correlation clustering)',
    'assumes': [
        'All strategies are observed over the same aligned periods',
        'Linear (Pearson) correlation captures the redundancy between trials',
        'Negatively correlated strategies are redundant: d = 1 - |corr|'
    ],
    'conventions': [
        'Complete linkage; ties on merge distance go to the lowest pair of cluster slots',
        'k chosen by maximum average silhouette width, ties go to the larger k',
        'Partition into singletons scores a silhouette of 0',
        'All strategies identical (distance within tolerance) gives K_eff = 1',
        f'Best silhouette below {MIN_SILHOUETTE} means no cluster structure: '
        f'K_eff = 1 if the mean distance is below {REDUNDANT_DISTANCE}, '
        'else the largest feasible candidate k',
        'Candidate cluster counts must be whole numbers'
    ],
    'does_not_account_for': [
        'Non-linear dependence between strategies',
        'Trials that were run but whose returns were not kept'
    ]
}


@dataclass(frozen=True)
class TrialClustering:
    """Clustering of candidate strategies."""
    k_effective: int
    clusters: pd.Series
    silhouette_scores: pd.Series
    linkage: Optional[np.ndarray]


# =============================================================================
# DISTANCES AND LINKAGE
# =============================================================================

def as_return_frame(returns_matrix: MatrixLike) -> pd.DataFrame:
    """
    Validate a return matrix: one row per period, one column per strategy.

    A 2-D array gets integer strategy ids 0..m-1.
    """
    if isinstance(returns_matrix, pd.DataFrame):
        try:
            frame = returns_matrix.astype(float)
        except (TypeError, ValueError) as e:
            raise InvalidReturnsError(
                f"Return matrix must be numeric: {e}",
                {'dtypes': returns_matrix.dtypes.astype(str).to_dict()}
            ) from e
    else:
        try:
            values = np.asarray(returns_matrix, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidReturnsError(f"Return matrix must be numeric: {e}") from e
        if values.ndim != 2:
            raise InvalidReturnsError(
                f"Expected a 2-D return matrix (periods x strategies), got {values.ndim} dimensions",
                {'shape': values.shape}
            )
        frame = pd.DataFrame(values)

    n_periods, n_strategies = frame.shape
    if n_strategies < 2:
        raise InsufficientDataError(
            f"Need at least 2 strategies, got {n_strategies}",
            available=n_strategies, required=2
        )
    if n_periods < 2:
        raise InsufficientDataError(
            f"Need at least 2 aligned observations, got {n_periods}",
            available=n_periods, required=2
        )
    if not np.isfinite(frame.to_numpy()).all():
        raise InvalidReturnsError(
            "Return matrix contains NaN or infinite values",
            {'strategies': [c for c in frame.columns if not np.isfinite(frame[c]).all()]}
        )

    return frame


def correlation_distance(returns_matrix: MatrixLike) -> pd.DataFrame:
    """
    Dissimilarity between strategies: d(i, j) = 1 - |corr(i, j)|.

    Args:
        returns_matrix: Periods x strategies

    Returns:
        Square DataFrame indexed by strategy id on both axes, zero diagonal
    """
    frame = as_return_frame(returns_matrix)

    flat = [c for c in frame.columns if frame[c].max() == frame[c].min()]
    if flat:
        raise InvalidReturnsError(
            "Constant strategy returns have no defined correlation",
            {'strategies': flat}
        )

    corr = frame.corr(method='pearson').to_numpy().clip(-1.0, 1.0)
    distance = 1.0 - np.abs(corr)
    np.fill_diagonal(distance, 0.0)

    return pd.DataFrame(distance, index=frame.columns, columns=frame.columns)


def complete_linkage(distance: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
    """
    Complete-linkage agglomerative clustering with fixed tie-breaking.

    The cluster distance is the largest pairwise distance between members.
    When several pairs are equally close, the pair with the lowest
    (row, column) position among the remaining cluster slots merges first,
    so the tree only depends on the distance matrix.

    Args:
        distance: Square symmetric distance matrix with zero diagonal

    Returns:
        SciPy-format linkage matrix, shape (m-1, 4): [id_a, id_b, height, size].
        Merged clusters get ids m, m+1, ... in merge order.
    """
    dist = np.array(distance, dtype=float)
    m = dist.shape[0]
    np.fill_diagonal(dist, np.inf)

    active = list(range(m))
    node_ids = list(range(m))
    sizes = [1] * m
    linkage = np.zeros((m - 1, 4))

    for step in range(m - 1):
        sub = dist[np.ix_(active, active)]
        # first minimum in row-major order, always above the diagonal
        a, b = divmod(int(np.argmin(sub)), len(active))
        i, j = active[a], active[b]

        linkage[step] = [
            min(node_ids[i], node_ids[j]),
            max(node_ids[i], node_ids[j]),
            dist[i, j],
            sizes[i] + sizes[j]
        ]

        merged = np.maximum(dist[i], dist[j])
        dist[i, :] = merged
        dist[:, i] = merged
        dist[i, i] = np.inf

        sizes[i] += sizes[j]
        node_ids[i] = m + step
        active.remove(j)

    return linkage


def _whole_candidates(k_candidates: Iterable[int]) -> list:
    """Candidate cluster counts as ints; fractional values are rejected."""
    candidates = []
    for k in k_candidates:
        if not float(k).is_integer():
            raise InvalidTrialCountError(
                f"Cluster counts must be whole numbers, got {k}",
                details={'candidate': k}
            )
        candidates.append(int(k))
    return candidates


def silhouette_by_k(
    distance: Union[pd.DataFrame, np.ndarray],
    linkage: np.ndarray,
    k_candidates: Iterable[int] = DEFAULT_K_CANDIDATES
) -> pd.Series:
    """
    Average silhouette width of the tree cut at each feasible k.

    Candidates outside [2, m] are skipped.

    Returns:
        Series of scores indexed by k (ascending)
    """
    dist = np.asarray(distance, dtype=float)
    m = dist.shape[0]

    scores = {}
    for k in sorted(set(_whole_candidates(k_candidates))):
        if k < 2 or k > m:
            continue
        if k == m:
            scores[k] = 0.0
            continue
        labels = cut_tree(linkage, n_clusters=k).ravel()
        scores[k] = float(silhouette_score(dist, labels, metric='precomputed'))

    result = pd.Series(scores, dtype=float, name='silhouette')
    result.index.name = 'k'
    return result


# =============================================================================
# EFFECTIVE TRIALS
# =============================================================================

def cluster_trials(
    returns_matrix: MatrixLike,
    k_candidates: Iterable[int] = DEFAULT_K_CANDIDATES
) -> TrialClustering:
    """
    Cluster candidate strategies and pick the number of clusters.

    Args:
        returns_matrix: Periods x strategies (DataFrame columns are strategy ids)
        k_candidates: Cluster counts to consider, e.g. range(2, 16)

    Returns:
        TrialClustering with K_eff, cluster id per strategy, and the
        silhouette score of every candidate that was evaluated
    """
    candidates = _whole_candidates(k_candidates)
    if not candidates:
        raise InvalidTrialCountError("k_candidates is empty")
    if min(candidates) < 1:
        raise InvalidTrialCountError(
            f"Cluster counts must be >= 1, got {min(candidates)}",
            k_effective=min(candidates)
        )

    distance = correlation_distance(returns_matrix)
    strategies = distance.index
    m = len(strategies)

    off_diagonal = distance.to_numpy()[~np.eye(m, dtype=bool)]
    if off_diagonal.max() <= IDENTICAL_DISTANCE_TOL:
        logger.debug("All %d strategies are perfectly (anti-)correlated: K_eff = 1", m)
        return TrialClustering(
            k_effective=1,
            clusters=pd.Series(0, index=strategies, name='cluster'),
            silhouette_scores=pd.Series(dtype=float, name='silhouette'),
            linkage=None
        )

    linkage = complete_linkage(distance)
    scores = silhouette_by_k(distance, linkage, candidates)
    if scores.empty:
        raise InvalidTrialCountError(
            f"No candidate cluster count in [2, {m}] for {m} strategies",
            details={'k_candidates': candidates, 'n_strategies': m}
        )

    if scores.max() < MIN_SILHOUETTE:
        mean_distance = float(off_diagonal.mean())
        logger.debug(
            "No cluster structure (best silhouette %.4f, mean distance %.4f)",
            scores.max(), mean_distance
        )
        if mean_distance < REDUNDANT_DISTANCE:
            return TrialClustering(
                k_effective=1,
                clusters=pd.Series(0, index=strategies, name='cluster'),
                silhouette_scores=scores,
                linkage=linkage
            )
        k = int(scores.index.max())
    else:
        best = scores[scores >= scores.max() - SILHOUETTE_TIE_TOL]
        k = int(best.index.max())
    labels = cut_tree(linkage, n_clusters=k).ravel().astype(int)

    logger.debug("Silhouette by k: %s -> K_eff = %d", scores.round(4).to_dict(), k)

    return TrialClustering(
        k_effective=k,
        clusters=pd.Series(labels, index=strategies, name='cluster'),
        silhouette_scores=scores,
        linkage=linkage
    )


def estimate_effective_trials(
    returns_matrix: MatrixLike,
    k_candidates: Iterable[int] = DEFAULT_K_CANDIDATES
) -> Tuple[int, pd.Series]:
    """
    Estimate how many independent trials a set of strategies amounts to.

    Example:
        >>> k_eff, clusters = estimate_effective_trials(returns_df, range(2, 16))
        >>> result = compute_dsr(returns_df[best], k_eff, sr_variance=var)

    Returns:
        (K_eff, cluster id per strategy)
    """
    clustering = cluster_trials(returns_matrix, k_candidates)
    return clustering.k_effective, clustering.clusters


def cross_sectional_sr_variance(
    returns_matrix: MatrixLike,
    clusters: Optional[Union[pd.Series, np.ndarray]] = None
) -> float:
    """
    Variance of Sharpe ratios across trials, for use as ``sr_variance``.

    Without clusters this is the sample variance of the per-strategy Sharpe
    ratios. With clusters, each cluster is first collapsed into an
    equal-weight portfolio, so a crowded cluster of near-copies counts once.

    Args:
        returns_matrix: Periods x strategies
        clusters: Cluster id per strategy (as returned by estimate_effective_trials)

    Returns:
        Sample variance (ddof=1) of the Sharpe ratios
    """
    frame = as_return_frame(returns_matrix)

    if clusters is None:
        series = frame
    else:
        if isinstance(clusters, pd.Series):
            labels = clusters.reindex(frame.columns)
        else:
            values = np.asarray(clusters)
            if len(values) != frame.shape[1]:
                raise InvalidReturnsError(
                    f"Got {len(values)} cluster labels for {frame.shape[1]} strategies",
                    {'n_labels': len(values), 'n_strategies': frame.shape[1]}
                )
            labels = pd.Series(values, index=frame.columns)
        if labels.isna().any():
            raise InvalidReturnsError(
                "Cluster labels are missing for some strategies",
                {'strategies': list(labels.index[labels.isna()])}
            )
        series = frame.T.groupby(labels).mean().T

    if series.shape[1] < 2:
        raise InsufficientDataError(
            f"Need at least 2 trials or clusters for a cross-sectional variance, got {series.shape[1]}",
            available=series.shape[1], required=2
        )

    sharpes = pd.Series({col: sharpe_ratio(series[col]) for col in series.columns})
    return float(sharpes.var(ddof=1))
