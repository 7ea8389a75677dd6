"""
Evaluation metrics for PICSY simulations.

Calculates:
1. Invariant errors - row sums of E, Σc against N
2. Solver health - convergence rate, iteration counts
3. Gini coefficients - contribution and purchasing-power inequality
4. Budget statistics
5. Transfer activity from the ledger
6. Irreducibility of the final effective matrix
"""

import numpy as np
import pandas as pd
from typing import Dict, Optional

from .ledger import Ledger
from .matrix_ops import row_sum_error
from .network import is_irreducible

ROW_SUM_TARGET = 1e-9
CONTRIBUTION_SUM_TARGET = 1e-6


def gini(values) -> float:
    """
    Gini coefficient of non-negative values.

    Gini = 2 Σ i x_(i) / (n Σ x) - (n + 1) / n  over sorted x
    """
    x = np.sort(np.asarray(values, dtype=float))
    x = x[x > 0]
    if len(x) == 0:
        return 0.0
    n = len(x)
    index = np.arange(1, n + 1)
    return float(2 * np.sum(index * x) / (n * np.sum(x)) - (n + 1) / n)


class MetricsCalculator:
    """Computes simulation metrics."""

    def calculate_all(self, history: pd.DataFrame, snapshot,
                      ledger: Optional[Ledger] = None,
                      solver_log: Optional[pd.DataFrame] = None) -> Dict:
        """
        Calculate all metrics from simulation results.

        Args:
            history: Per-tick per-participant rows (tick, participant, c, budget, pp)
            snapshot: Final EngineSnapshot
            ledger: Ledger holding the run's transfers
            solver_log: Per-tick rows (tick, iterations, converged, residual)

        Returns:
            Metrics dictionary
        """
        metrics = {}
        metrics.update(self.calculate_invariants(history, snapshot))
        metrics.update(self.calculate_inequality(snapshot))
        if ledger is not None:
            metrics.update(self.calculate_activity(ledger))
        if solver_log is not None:
            metrics.update(self.calculate_solver_health(solver_log))
        metrics['irreducible'] = bool(is_irreducible(snapshot.E))
        metrics['final_size'] = int(snapshot.size)
        return metrics

    def calculate_invariants(self, history: pd.DataFrame, snapshot) -> Dict:
        """
        Worst invariant errors seen.

        Row sums must stay within 1e-9 of 1, Σc within 1e-6 of N.
        """
        row_err = row_sum_error(snapshot.E)
        c_err = abs(float(np.sum(snapshot.c)) - snapshot.size)

        if not history.empty:
            per_tick = history.groupby('tick').agg(c_sum=('c', 'sum'), n=('participant', 'count'))
            c_err = max(c_err, float((per_tick['c_sum'] - per_tick['n']).abs().max()))
            if 'row_sum_error' in history.columns:
                row_err = max(row_err, float(history['row_sum_error'].max()))

        return {
            'max_row_sum_error': row_err,
            'max_contribution_sum_error': c_err,
            'row_sum_pass': bool(row_err < ROW_SUM_TARGET),
            'contribution_sum_pass': bool(c_err < CONTRIBUTION_SUM_TARGET),
        }

    def calculate_inequality(self, snapshot) -> Dict:
        """Gini of c and PP plus budget summary on the final snapshot."""
        budgets = snapshot.budgets
        pp = snapshot.pp
        return {
            'gini_contribution': gini(snapshot.c),
            'gini_pp': gini(pp),
            'budget_mean': float(np.mean(budgets)),
            'budget_min': float(np.min(budgets)),
            'budget_max': float(np.max(budgets)),
            'pp_total': float(np.sum(pp)),
            'contribution_max': float(np.max(snapshot.c)),
            'contribution_min': float(np.min(snapshot.c)),
        }

    def calculate_activity(self, ledger: Ledger) -> Dict:
        """Transfer counts and volumes."""
        df = ledger.to_dataframe()
        if df.empty:
            return {'transfers': 0, 'total_delta': 0.0, 'mean_delta': 0.0,
                    'mean_alpha': 0.0, 'unique_pairs': 0}
        return {
            'transfers': int(len(df)),
            'total_delta': float(df['delta'].sum()),
            'mean_delta': float(df['delta'].mean()),
            'mean_alpha': float(df['alpha'].mean()),
            'unique_pairs': int(df.groupby(['buyer', 'seller']).ngroups),
        }

    def calculate_solver_health(self, solver_log: pd.DataFrame) -> Dict:
        if solver_log.empty:
            return {'solver_convergence_rate': 1.0}
        return {
            'solver_convergence_rate': float(solver_log['converged'].mean()),
            'solver_mean_iterations': float(solver_log['iterations'].mean()),
            'solver_max_iterations': int(solver_log['iterations'].max()),
            'solver_max_residual': float(solver_log['residual'].max()),
        }


def generate_summary_report(metrics: Dict, scenario_id: str = "") -> str:
    """Generate a human-readable summary report."""
    lines = []
    lines.append(f"{'='*60}")
    lines.append(f"PICSY Simulation Report: {scenario_id}")
    lines.append(f"{'='*60}")
    lines.append("")

    row_err = metrics.get('max_row_sum_error', 0.0)
    c_err = metrics.get('max_contribution_sum_error', 0.0)
    lines.append(f"[{'PASS' if metrics.get('row_sum_pass', False) else 'FAIL'}] "
                 f"Row sums: max error {row_err:.2e} (target: < 1e-9)")
    lines.append(f"[{'PASS' if metrics.get('contribution_sum_pass', False) else 'FAIL'}] "
                 f"Σc = N: max error {c_err:.2e} (target: < 1e-6)")

    rate = metrics.get('solver_convergence_rate')
    if rate is not None:
        lines.append(f"[{'PASS' if rate == 1.0 else 'WARN'}] Solver converged: {rate:.2%}")

    lines.append(f"[INFO] Population: {metrics.get('final_size', '?')}, "
                 f"irreducible: {metrics.get('irreducible', '?')}")
    lines.append(f"[INFO] Gini c: {metrics.get('gini_contribution', 0.0):.4f}, "
                 f"Gini PP: {metrics.get('gini_pp', 0.0):.4f}")
    lines.append(f"[INFO] Budget mean: {metrics.get('budget_mean', 0.0):.4f} "
                 f"(min {metrics.get('budget_min', 0.0):.4f})")
    if 'transfers' in metrics:
        lines.append(f"[INFO] Transfers: {metrics['transfers']} "
                     f"(Σδ={metrics.get('total_delta', 0.0):.3f})")

    lines.append("")
    lines.append(f"{'='*60}")

    return "\n".join(lines)
