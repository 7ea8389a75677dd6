"""
DoE (Design of Experiments) parameter sweep.

2^4 full factorial design (16 runs) over the economy's tuning knobs:

  γ  (gamma)           : [0.02, 0.2]  recovery rate
  R  (recovery_interval): [5,   20]   ticks between recoveries
  δ  (delta_max)        : [0.04, 0.12] upper bound of random likes
  G  (growth_interval)  : [5,   20]   ticks between new members

Each run grows a 3-member economy and scores how healthy it ends up.
"""

import json
import time
import pyDOE2
from typing import Dict, List, Optional

from .config import ScenarioCase
from .runner import SimulationRunner


# ------------------------------------------------------------------ #
# Parameter space                                                       #
# ------------------------------------------------------------------ #
FACTORS = {
    'gamma':             [0.02, 0.2],
    'recovery_interval': [5,    20],
    'delta_max':         [0.04, 0.12],
    'growth_interval':   [5,    20],
}

FACTOR_NAMES = list(FACTORS.keys())
INTEGER_FACTORS = {'recovery_interval', 'growth_interval'}

QUICK_CASE = ScenarioCase('DOE', 3, 120, 10, 'DoE growth run', '')


def _decode_level(factor: str, level: float) -> float:
    """Map coded level (-1 or +1) → actual value."""
    lo, hi = FACTORS[factor]
    return lo + (level + 1) / 2 * (hi - lo)


def design_points() -> List[Dict]:
    """The 16 parameter combinations of the 2^4 design."""
    design = pyDOE2.ff2n(len(FACTOR_NAMES))   # shape (16, 4), levels ±1
    points = []
    for row in design:
        params = {name: _decode_level(name, row[i]) for i, name in enumerate(FACTOR_NAMES)}
        for name in INTEGER_FACTORS:
            params[name] = int(round(params[name]))
        points.append(params)
    return points


def objective(metrics: Dict) -> float:
    """
    Composite objective to MINIMISE.

    Lower is better:
      - invariant errors (heavy penalty, they should be ~0)
      - solver non-convergence
      - purchasing-power inequality (Gini PP)
      - starved budgets (mean self-budget far below 0.2)
    """
    total = 0.0
    total += 1e6 * metrics.get('max_row_sum_error', 0.0)
    total += 1e3 * metrics.get('max_contribution_sum_error', 0.0)
    total += 10.0 * (1.0 - metrics.get('solver_convergence_rate', 1.0))
    total += 3.0 * metrics.get('gini_pp', 0.0)
    total += 2.0 * max(0.0, 0.2 - metrics.get('budget_mean', 0.0))
    return total


def run_doe(output_dir: Optional[str] = None, case: ScenarioCase = QUICK_CASE,
            verbose: bool = True) -> List[Dict]:
    """
    Run the 16-point design and return results ranked best first.
    """
    runner = SimulationRunner(output_dir=output_dir)
    doe_dir = runner.output_dir / "doe"
    doe_dir.mkdir(exist_ok=True, parents=True)

    results = []
    if verbose:
        print("=" * 65)
        print("DoE 2^4 Parameter Sweep")
        print(f"{'Run':>4}  {'γ':>5}  {'R':>4}  {'δmax':>5}  {'G':>4}  {'Score':>8}")
        print("=" * 65)

    for run_idx, params in enumerate(design_points()):
        run_case = ScenarioCase(f"DOE_r{run_idx:02d}", case.initial_size, case.ticks,
                                params['growth_interval'], case.scenario_name, case.description)
        m = runner.run_scenario(
            run_case,
            gamma=params['gamma'],
            recovery_interval=params['recovery_interval'],
            delta_max=params['delta_max'],
            growth_interval=params['growth_interval'],
            save=False,
            verbose=False,
        )
        score = objective(m)
        results.append({'run': run_idx, 'params': params, 'score': score, 'metrics': m})

        if verbose:
            print(f"{run_idx:>4}  {params['gamma']:>5.2f}  {params['recovery_interval']:>4d}"
                  f"  {params['delta_max']:>5.2f}  {params['growth_interval']:>4d}  {score:>8.4f}")

    # Sort by score (lower = better)
    results.sort(key=lambda x: x['score'])

    out_path = doe_dir / "doe_results.json"
    with open(out_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)

    if verbose:
        print("\nTop 5 parameter combinations:")
        for rank, r in enumerate(results[:5], 1):
            p = r['params']
            print(f"{rank:>4}  {p['gamma']:>5.2f}  {p['recovery_interval']:>4d}"
                  f"  {p['delta_max']:>5.2f}  {p['growth_interval']:>4d}  {r['score']:>8.4f}")
        print(f"\nBest params: {results[0]['params']}")
        print(f"Saved to {out_path}")
    return results


if __name__ == '__main__':
    t0 = time.time()
    run_doe()
    print(f"\n[DoE complete in {time.time()-t0:.0f}s]")
