"""
Simulation runner orchestrating the tick-by-tick loop.
Integrates engine, random likes, recovery, membership growth, ledger and metrics.
"""

import json
import csv
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional

from .config import EconomyConfig, ScenarioCase
from .engine import EngineController, EngineSnapshot
from .ledger import Ledger
from .matrix_ops import row_sum_error
from .metrics import MetricsCalculator, generate_summary_report
from .recovery import RecoveryEngine
from .simulator import RandomTransferDriver
from .solver import ContributionSolver


class SimulationRunner:
    """Runs PICSY scenarios end to end."""

    def __init__(self, output_dir: Optional[str] = None):
        if output_dir is None:
            output_dir = str(Path.cwd() / "results")
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(exist_ok=True, parents=True)
        self.config = EconomyConfig()

    def run_scenario(self, case: ScenarioCase,
                     gamma: Optional[float] = None,
                     recovery_interval: Optional[int] = None,
                     delta_min: Optional[float] = None,
                     delta_max: Optional[float] = None,
                     growth_interval: Optional[int] = None,
                     transfers_per_tick: Optional[int] = None,
                     random_seed: int = 42,
                     save: bool = True,
                     verbose: bool = True) -> Dict:
        """
        Run a single scenario.

        Args:
            case: ScenarioCase configuration
            gamma: Recovery rate (default from config)
            recovery_interval: Ticks between recoveries (default from config)
            delta_min: Lower bound of random δ
            delta_max: Upper bound of random δ
            growth_interval: Ticks between new members (default from case; 0 = none)
            transfers_per_tick: Random likes proposed per tick
            random_seed: Seed for the like simulator
            save: Write CSV/JSON results to output_dir
            verbose: Print progress

        Returns:
            Metrics dictionary
        """
        pop = self.config.population
        tcfg = self.config.transfer
        rcfg = self.config.recovery
        scfg = self.config.solver

        gamma = rcfg.gamma if gamma is None else gamma
        recovery_interval = rcfg.interval if recovery_interval is None else recovery_interval
        delta_min = tcfg.sim_delta_min if delta_min is None else delta_min
        delta_max = tcfg.sim_delta_max if delta_max is None else delta_max
        growth_interval = case.growth_interval if growth_interval is None else growth_interval
        transfers_per_tick = tcfg.transfers_per_tick if transfers_per_tick is None else transfers_per_tick

        if verbose:
            print(f"\n{'='*60}")
            print(f"Running {case.scenario_id}: {case.scenario_name}")
            print(f"N={case.initial_size}, ticks={case.ticks}, growth every {growth_interval or '-'}")
            print(f"Params: γ={gamma}, recovery every {recovery_interval}, δ∈[{delta_min}, {delta_max}]")
            print(f"{'='*60}")

        # --- Initialize all components ---
        solver = ContributionSolver(max_iter=scfg.max_iter, tol=scfg.tol,
                                    strict_warm_start=scfg.strict_warm_start)
        controller = EngineController(case.initial_size, pop.diag_weight, pop.off_weight,
                                      solver=solver)
        ledger = Ledger()
        ledger.attach(controller)

        solver_log: List[Dict] = []
        current_tick = {'tick': 0}

        def log_solve(snapshot: EngineSnapshot):
            result = snapshot.solver_result
            solver_log.append({
                'tick': current_tick['tick'],
                'size': snapshot.size,
                'iterations': result.iterations,
                'converged': result.converged,
                'residual': result.residual,
            })

        controller.subscribe(log_solve)

        driver = RandomTransferDriver(controller, delta_min, delta_max, random_seed=random_seed)
        recovery = RecoveryEngine(gamma=gamma, interval=recovery_interval)

        # --- Main simulation loop ---
        history: List[Dict] = []

        for tick in range(case.ticks):
            current_tick['tick'] = tick
            if verbose and (tick + 1) % 50 == 0:
                print(f"  Tick {tick + 1}/{case.ticks}  N={controller.size}  transfers={len(ledger)}")

            # 1. Membership growth (cap enforced here, not by the engine)
            if (growth_interval and tick > 0 and tick % growth_interval == 0
                    and controller.size < pop.max_members):
                controller.add_member()

            # 2. Random likes
            driver.run(transfers_per_tick)

            # 3. Natural recovery
            recovery.maybe_apply(controller, tick)

            # 4. Record tick data
            snap = controller.snapshot()
            err = row_sum_error(snap.E)
            for i in range(snap.size):
                history.append({
                    'tick': tick,
                    'participant': i,
                    'c': float(snap.c[i]),
                    'budget': float(snap.E[i, i]),
                    'pp': float(snap.E[i, i] * snap.c[i]),
                    'row_sum_error': err,
                })

        # --- Calculate metrics ---
        history_df = pd.DataFrame(history)
        solver_df = pd.DataFrame(solver_log, columns=['tick', 'size', 'iterations',
                                                      'converged', 'residual'])
        metrics = MetricsCalculator().calculate_all(history_df, controller.snapshot(),
                                                    ledger, solver_df)

        metrics['scenario_id'] = case.scenario_id
        metrics['scenario_name'] = case.scenario_name
        metrics['ticks'] = case.ticks
        metrics['skipped_ticks'] = dict(driver.skipped)
        metrics['listener_errors'] = len(controller.listener_errors)
        metrics['recoveries'] = recovery.applications
        metrics['params'] = {
            'gamma': gamma,
            'recovery_interval': recovery_interval,
            'delta_min': delta_min,
            'delta_max': delta_max,
            'growth_interval': growth_interval,
            'transfers_per_tick': transfers_per_tick,
        }

        if save:
            self._save_results(case.scenario_id, history, ledger, metrics)

        if verbose:
            print(generate_summary_report(metrics, case.scenario_id))

        return metrics

    def _save_results(self, scenario_id: str, history: List[Dict], ledger: Ledger,
                      metrics: Dict):
        """Save per-tick history and ledger to CSV, metrics to JSON."""
        history_dir = self.output_dir / "history"
        history_dir.mkdir(exist_ok=True, parents=True)

        csv_path = history_dir / f"{scenario_id}_history.csv"
        if history:
            keys = history[0].keys()
            with open(csv_path, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=keys)
                writer.writeheader()
                writer.writerows(history)

        ledger.to_dataframe().to_csv(history_dir / f"{scenario_id}_ledger.csv", index=False)

        summary_dir = self.output_dir / "summary"
        summary_dir.mkdir(exist_ok=True, parents=True)

        json_path = summary_dir / f"{scenario_id}_metrics.json"
        with open(json_path, 'w') as f:
            json.dump(metrics, f, indent=2, default=str)

    def run_all_scenarios(self, verbose: bool = True, **params) -> List[Dict]:
        """
        Run every built-in scenario.

        Returns:
            List of metrics dictionaries, one per scenario.
        """
        results = []
        for case in self.config.scenarios:
            results.append(self.run_scenario(case, verbose=verbose, **params))

        summary_dir = self.output_dir / "summary"
        summary_dir.mkdir(exist_ok=True, parents=True)
        with open(summary_dir / "all_scenarios.json", 'w') as f:
            json.dump(results, f, indent=2, default=str)

        if verbose:
            print(f"\n{'='*60}")
            print("ALL SCENARIOS COMPLETE")
            print(f"{'='*60}")
            for r in results:
                print(f"  {r['scenario_id']}: N={r['final_size']}, "
                      f"transfers={r.get('transfers', 0)}, "
                      f"Gini PP={r['gini_pp']:.4f}, "
                      f"Σc err={r['max_contribution_sum_error']:.1e} | {r['scenario_name']}")

        return results


if __name__ == '__main__':
    SimulationRunner().run_all_scenarios()
