from .errors import (
    OverfittingError,
    InsufficientDataError,
    UndefinedSharpeRatioError,
    InvalidTrialCountError,
    DegenerateVarianceError,
    InvalidReturnsError,
    InvalidProbabilityError
)
from .deflated_sharpe import (
    DSRResult,
    ReturnMoments,
    PlaceholderVarianceWarning,
    compute_dsr,
    expected_max_sharpe,
    probabilistic_sharpe_ratio,
    minimum_track_record_length,
    return_moments,
    sharpe_ratio
)
from .effective_trials import (
    TrialClustering,
    estimate_effective_trials,
    cluster_trials,
    correlation_distance,
    complete_linkage,
    silhouette_by_k,
    cross_sectional_sr_variance
)
from .selection import (
    SelectionAnalysis,
    analyze_strategy_selection,
    get_assumptions
)
from .false_discovery import (
    precision,
    false_discovery_rate,
    precision_table
)
