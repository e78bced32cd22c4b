"""
hierbinom Quickstart Example
============================

This example demonstrates the complete workflow:
1. Load the clutch free-throw data
2. Run the Metropolis-within-Gibbs sampler
3. Inspect posterior summaries and shrinkage
4. Check convergence

Replace the bundled data with your own per-unit counts in production.
"""

import pandas as pd

from hierbinom import BinomialUnits, HierarchicalAnalysis, SamplerConfig, load_clutch_free_throws, run

print("=" * 70)
print("hierbinom Quickstart Example")
print("=" * 70)

# ===== 1. Load Data =====
print("\n[Step 1] Loading clutch free-throw data...\n")

data = load_clutch_free_throws()
print(data.to_frame().to_string())

# Your own data: one row per unit with reference proportion and counts
custom = BinomialUnits.from_frame(
    pd.DataFrame(
        {'q': [0.75, 0.80, 0.70], 'y': [12, 30, 5], 'n': [15, 40, 9]},
        index=['unit_a', 'unit_b', 'unit_c']
    )
)
print(f"\nCustom dataset with {custom.K} units also accepted.")


# ===== 2. Functional Interface =====
print("\n" + "=" * 70)
print("[Step 2] Running the sampler")
print("=" * 70)

samples, accept_ratio, means, intervals = run(
    data.q, data.y, data.n,
    S=5000, burn_in=1000, proposal_sd=1.2,
    prior_mean=0.0, prior_var=10.0,
    init_theta=0.5, init_m=1.0, rng_seed=42
)

print(f"\nAccept ratio for m: {accept_ratio:.3f} (target ~0.4)")
print(f"Posterior mean of m: {means[-1]:.2f} "
      f"(95% CI [{intervals[-1, 0]:.2f}, {intervals[-1, 1]:.2f}])")
print(f"Posterior mean of theta[{data.names[0]}]: {means[0]:.3f} "
      f"(95% CI [{intervals[0, 0]:.3f}, {intervals[0, 1]:.3f}])")


# ===== 3. Analysis Object =====
print("\n" + "=" * 70)
print("[Step 3] Full analysis with two chains")
print("=" * 70)

analysis = HierarchicalAnalysis(config=SamplerConfig(random_seed=42), n_chains=2)
analysis.fit(data)

print("\nPosterior summary:\n")
print(analysis.summary().round(3).to_string())

print("\nShrinkage toward overall FT%:\n")
print(analysis.shrinkage()[['q', 'raw_proportion', 'posterior_mean']].round(3).to_string())

print("\nP(clutch FT% < overall FT%):\n")
print(analysis.prob_below_reference().round(3).to_string())


# ===== 4. Convergence =====
print("\n" + "=" * 70)
print("[Step 4] MCMC Convergence Diagnostics")
print("=" * 70 + "\n")

diagnostics = analysis.get_convergence_diagnostics()
print(diagnostics.to_string(index=False))
print(f"\n✓ Max R̂: {diagnostics['r_hat'].max():.4f} (should be < 1.01)")
print(f"✓ Min ESS: {diagnostics['ess_bulk'].min():.0f} (should be > 400)")

print("\nTo cross-check against PyMC:")
print("  analysis.compare_reference()")
print("\n" + "=" * 70 + "\n")
