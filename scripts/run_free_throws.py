"""
Fit the Hierarchical Beta-Binomial Model to NBA Clutch Free Throws

Runs the Metropolis-within-Gibbs sampler on the ten-player 2016-17 clutch
free-throw data, prints posterior summaries and convergence diagnostics,
and writes tables and the trace to an output directory.

Usage:
    python scripts/run_free_throws.py [--quick-test] [--compare-reference]

Options:
    --quick-test          Short run (1000 iterations, 200 burn-in)
    --compare-reference   Also fit the model with PyMC and compare
    --n-chains N          Chains used for R-hat (default 2)
    --proposal-sd SD      Random-walk scale for m (default 1.2)
    --seed SEED           Random seed (default 42)
    --output-dir DIR      Where to write outputs (default outputs/free_throws)
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

import pandas as pd

from hierbinom import (
    HierarchicalAnalysis,
    HierBinomError,
    SamplerConfig,
    load_clutch_free_throws,
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Fit the hierarchical Beta-Binomial model to clutch free throws"
    )
    parser.add_argument(
        '--quick-test',
        action='store_true',
        help='Quick test mode (1000 iterations, 200 burn-in)'
    )
    parser.add_argument(
        '--compare-reference',
        action='store_true',
        help='Cross-check against PyMC NUTS'
    )
    parser.add_argument('--n-chains', type=int, default=2)
    parser.add_argument('--proposal-sd', type=float, default=1.2)
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument(
        '--output-dir',
        type=Path,
        default=Path('outputs') / 'free_throws'
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main execution function."""
    args = parse_args(argv)

    print(f"{'=' * 80}")
    print("CLUTCH FREE THROWS: HIERARCHICAL BETA-BINOMIAL")
    print(f"{'=' * 80}")
    print(f"Mode: {'QUICK TEST' if args.quick_test else 'FULL RUN'}")
    print(f"Start time: {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

    start_time = datetime.now()

    if args.quick_test:
        config = SamplerConfig.quick(proposal_sd=args.proposal_sd, random_seed=args.seed)
    else:
        config = SamplerConfig(proposal_sd=args.proposal_sd, random_seed=args.seed)

    data = load_clutch_free_throws()
    print("Data:")
    print(data.to_frame().to_string())

    try:
        analysis = HierarchicalAnalysis(config=config, n_chains=args.n_chains)
        analysis.fit(data)
    except HierBinomError as e:
        print(f"\n✗ ERROR: {e}")
        print("  Try a smaller --proposal-sd")
        sys.exit(1)

    print(f"\n{'=' * 80}")
    print("POSTERIOR SUMMARY")
    print(f"{'=' * 80}")
    print(f"Accept ratio for m: {analysis.accept_ratio_:.3f} (target ~0.4)\n")
    summary = analysis.summary()
    print(summary.round(3).to_string())

    shrinkage = analysis.shrinkage()
    shrinkage['prob_below_reference'] = analysis.prob_below_reference()
    print("\nShrinkage toward overall FT% and P(clutch < overall):")
    print(shrinkage.round(3).to_string())

    convergence = analysis.check_convergence()
    if not convergence['all_ok']:
        print("✗ Convergence criteria not met; outputs are still written. "
              "Rerun without --quick-test or with more chains before relying on them.")

    comparison = None
    if args.compare_reference:
        comparison = analysis.compare_reference(chains=args.n_chains)
        print("\nCustom sampler vs PyMC:")
        print(comparison.round(3).to_string())

    output_dir = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    summary.to_csv(output_dir / 'posterior_summary.csv')
    shrinkage.to_csv(output_dir / 'shrinkage.csv')
    analysis.get_convergence_diagnostics().to_csv(
        output_dir / 'diagnostics.csv', index=False
    )
    if comparison is not None:
        comparison.to_csv(output_dir / 'reference_comparison.csv')
    analysis.save_trace(output_dir / 'trace.nc')

    elapsed = (datetime.now() - start_time).total_seconds()
    print(f"\n{'=' * 80}")
    print(f"✓ Done in {elapsed:.1f}s "
          f"(max R̂ = {convergence['rhat_max']:.4f}, min ESS = {convergence['ess_min']:.0f})")
    print(f"  Outputs written to {output_dir}")
    print(f"{'=' * 80}")


if __name__ == "__main__":
    main()
