"""
Per-unit binomial data for the hierarchical Beta-Binomial model.

Each unit i carries a known reference proportion q_i (treated as a fixed
constant, not inferred) and observed counts y_i successes out of n_i trials.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .exceptions import InvalidInput


# NBA 2016-17 regular season: overall free-throw percentage (q), and
# free throws made (y) / attempted (n) in clutch situations.
CLUTCH_FREE_THROWS = [
    ('Russell Westbrook', 0.845, 64, 75),
    ('James Harden', 0.847, 72, 95),
    ('Kawhi Leonard', 0.880, 55, 63),
    ('LeBron James', 0.674, 27, 39),
    ('Isaiah Thomas', 0.909, 75, 83),
    ('Stephen Curry', 0.898, 24, 26),
    ('Giannis Antetokounmpo', 0.770, 28, 41),
    ('John Wall', 0.801, 66, 82),
    ('Anthony Davis', 0.802, 40, 54),
    ('Kevin Durant', 0.875, 13, 16),
]


@dataclass(frozen=True)
class BinomialUnits:
    """
    Immutable inputs of one sampling run.

    Parameters
    ----------
    q : np.ndarray, shape (K,)
        Reference success proportion per unit, each in (0, 1)
    y : np.ndarray, shape (K,)
        Observed successes per unit, 0 <= y_i <= n_i
    n : np.ndarray, shape (K,)
        Observed trials per unit, n_i >= 1
    names : list of str, optional
        Unit labels. Defaults to 'unit_0', 'unit_1', ...

    Examples
    --------
    >>> units = BinomialUnits.from_arrays([0.8, 0.7], [8, 3], [10, 5])
    >>> units.K
    2
    """

    q: np.ndarray
    y: np.ndarray
    n: np.ndarray
    names: List[str] = field(default_factory=list)

    @classmethod
    def from_arrays(
        cls,
        q: Sequence[float],
        y: Sequence[int],
        n: Sequence[int],
        names: Optional[Sequence[str]] = None
    ) -> "BinomialUnits":
        """Validate raw sequences and build an instance."""
        q_arr, y_arr, n_arr = validate_units(q, y, n)
        K = len(q_arr)

        if names is None:
            names = [f"unit_{i}" for i in range(K)]
        names = [str(name) for name in names]
        if len(names) != K:
            raise InvalidInput(
                'names', f"expected {K} labels, got {len(names)}"
            )
        if len(set(names)) != K:
            raise InvalidInput('names', "labels must be unique")

        return cls(q=q_arr, y=y_arr, n=n_arr, names=names)

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        q_col: str = 'q',
        y_col: str = 'y',
        n_col: str = 'n',
        name_col: Optional[str] = None
    ) -> "BinomialUnits":
        """
        Build units from a DataFrame with one row per unit.

        If ``name_col`` is None the DataFrame index is used as unit labels.
        """
        for col in (q_col, y_col, n_col):
            if col not in df.columns:
                raise InvalidInput(col, f"column '{col}' not found in DataFrame")

        if name_col is not None:
            if name_col not in df.columns:
                raise InvalidInput(name_col, f"column '{name_col}' not found in DataFrame")
            names = df[name_col].tolist()
        else:
            names = df.index.tolist()

        return cls.from_arrays(
            df[q_col].to_numpy(),
            df[y_col].to_numpy(),
            df[n_col].to_numpy(),
            names=names
        )

    @property
    def K(self) -> int:
        return len(self.q)

    @property
    def raw_proportion(self) -> np.ndarray:
        """No-pooling estimate y_i / n_i."""
        return self.y / self.n

    def validate(self) -> "BinomialUnits":
        validate_units(self.q, self.y, self.n)
        return self

    def to_frame(self) -> pd.DataFrame:
        """One row per unit: q, y, n and the raw proportion y/n."""
        return pd.DataFrame(
            {
                'q': self.q,
                'y': self.y,
                'n': self.n,
                'raw_proportion': self.raw_proportion,
            },
            index=pd.Index(self.names, name='unit')
        )


def validate_units(q, y, n):
    """
    Check the data preconditions and return float/int arrays.

    Values are never clamped or rounded: a non-integer count or a
    reference proportion of exactly 0 or 1 is rejected.

    Returns
    -------
    q : np.ndarray of float64
    y : np.ndarray of int64
    n : np.ndarray of int64

    Raises
    ------
    InvalidInput
        Naming the offending argument
    """
    q = _as_1d('q', q)
    y = _as_1d('y', y)
    n = _as_1d('n', n)

    K = len(q)
    if K == 0:
        raise InvalidInput('q', "at least one unit is required")
    if len(y) != K:
        raise InvalidInput('y', f"length {len(y)} does not match len(q)={K}")
    if len(n) != K:
        raise InvalidInput('n', f"length {len(n)} does not match len(q)={K}")

    if not np.all(np.isfinite(q)):
        raise InvalidInput('q', "contains non-finite values")
    bad = np.flatnonzero((q <= 0) | (q >= 1))
    if bad.size:
        raise InvalidInput(
            'q', f"values must lie strictly in (0, 1); unit {bad[0]} has {q[bad[0]]}"
        )

    y = _as_counts('y', y)
    n = _as_counts('n', n)

    bad = np.flatnonzero(n < 1)
    if bad.size:
        raise InvalidInput('n', f"trials must be >= 1; unit {bad[0]} has {n[bad[0]]}")

    bad = np.flatnonzero((y < 0) | (y > n))
    if bad.size:
        i = bad[0]
        raise InvalidInput(
            'y', f"need 0 <= y <= n; unit {i} has y={y[i]}, n={n[i]}"
        )

    return q, y, n


def load_clutch_free_throws() -> BinomialUnits:
    """
    Load the ten-player clutch free-throw dataset.

    Returns
    -------
    units : BinomialUnits
        q = overall FT%, y = clutch makes, n = clutch attempts
    """
    names, q, y, n = zip(*CLUTCH_FREE_THROWS)
    return BinomialUnits.from_arrays(q, y, n, names=names)


def _as_1d(name: str, values) -> np.ndarray:
    try:
        arr = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        raise InvalidInput(name, "must be a sequence of numbers") from None
    if arr.ndim != 1:
        raise InvalidInput(name, f"must be one-dimensional, got shape {arr.shape}")
    return arr


def _as_counts(name: str, values: np.ndarray) -> np.ndarray:
    if not np.all(np.isfinite(values)):
        raise InvalidInput(name, "contains non-finite values")
    if not np.all(values == np.floor(values)):
        bad = np.flatnonzero(values != np.floor(values))[0]
        raise InvalidInput(
            name, f"counts must be integers; unit {bad} has {values[bad]}"
        )
    return values.astype(np.int64)
