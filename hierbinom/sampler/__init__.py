"""Metropolis-within-Gibbs sampler and posterior summaries"""

from .metropolis_gibbs import (
    SamplerResult,
    SamplerState,
    acceptance_probability,
    draw_theta,
    log_posterior_m,
    make_rng,
    parameter_names,
    prior_shapes,
    run,
    run_chain,
    step,
    update_m
)
from .summary import (
    PosteriorSummary,
    prob_below_reference,
    shrinkage_frame,
    summarize,
    summary_frame
)

__all__ = [
    'SamplerResult',
    'SamplerState',
    'acceptance_probability',
    'draw_theta',
    'log_posterior_m',
    'make_rng',
    'parameter_names',
    'prior_shapes',
    'run',
    'run_chain',
    'step',
    'update_m',
    'PosteriorSummary',
    'prob_below_reference',
    'shrinkage_frame',
    'summarize',
    'summary_frame'
]
