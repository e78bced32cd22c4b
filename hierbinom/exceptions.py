"""
Exceptions raised by hierbinom.

Every error aborts the run that triggered it. Nothing is retried
internally; callers re-run with adjusted settings.
"""

from typing import Optional


class HierBinomError(Exception):
    """Base class for all hierbinom errors."""


class InvalidInput(HierBinomError, ValueError):
    """
    A precondition on the data or sampler settings was violated.

    Parameters
    ----------
    argument : str
        Name of the offending argument (e.g. 'y', 'proposal_sd')
    message : str
        Human-readable description of the violation
    """

    def __init__(self, argument: str, message: str):
        self.argument = argument
        super().__init__(f"Invalid '{argument}': {message}")


class InsufficientSamples(InvalidInput):
    """Burn-in leaves no draws to summarize."""

    def __init__(self, n_samples: int, burn_in: int):
        self.n_samples = n_samples
        self.burn_in = burn_in
        super().__init__(
            'burn_in',
            f"burn_in={burn_in} leaves no samples out of {n_samples}"
        )


class NumericalDegeneracy(HierBinomError, FloatingPointError):
    """
    A derived Beta or Normal parameter became non-finite or non-positive.

    Usually caused by exp(m) overflowing for a very large m. Re-run with a
    smaller proposal_sd or a tighter prior on m.

    Attributes
    ----------
    iteration : int or None
        1-based iteration at which the failure happened
    unit : int or None
        0-based unit index, None if the failure is not unit-specific
    """

    def __init__(
        self,
        message: str,
        iteration: Optional[int] = None,
        unit: Optional[int] = None
    ):
        self.iteration = iteration
        self.unit = unit

        where = []
        if iteration is not None:
            where.append(f"iteration {iteration}")
        if unit is not None:
            where.append(f"unit {unit}")
        prefix = f"[{', '.join(where)}] " if where else ""
        super().__init__(f"{prefix}{message}")
