"""
Configuration and parameter definitions for PICSY simulations
"""

from dataclasses import dataclass
from typing import Dict, List

# ============================================================================
# POPULATION PARAMETERS
# ============================================================================

@dataclass
class PopulationConfig:
    """Initial population and growth limits"""

    # Starting population (alice, bob, carol)
    initial_size: int = 3

    # Initial split of every row before normalization
    diag_weight: float = 0.2  # self-budget
    off_weight: float = 0.4   # weight on each other participant

    # Population cap, enforced by callers before add_member
    max_members: int = 30


# ============================================================================
# SOLVER PARAMETERS
# ============================================================================

@dataclass
class SolverConfig:
    """Parameters for the contribution power iteration"""

    max_iter: int = 1000
    tol: float = 1e-10

    # Raise on a warm start of the wrong length instead of restarting uniform
    strict_warm_start: bool = False


# ============================================================================
# TRANSFER PARAMETERS
# ============================================================================

@dataclass
class TransferConfig:
    """Parameters for likes and the random like simulator"""

    # δ used by a manual like
    default_delta: float = 0.05

    # Random simulator draws δ uniformly from this range
    sim_delta_min: float = 0.02
    sim_delta_max: float = 0.08

    # Seconds between simulator ticks when run on a timer
    sim_interval: float = 1.5

    # Transfers proposed per simulated tick
    transfers_per_tick: int = 3


# ============================================================================
# RECOVERY PARAMETERS
# ============================================================================

@dataclass
class RecoveryConfig:
    """Parameters for natural recovery"""

    # γ - decay rate toward self-budget
    gamma: float = 0.1

    # Ticks between recovery applications
    interval: int = 10

    gamma_range: List[float] = None  # Default: [0.02, 0.05, 0.1, 0.2]

    def __post_init__(self):
        if self.gamma_range is None:
            self.gamma_range = [0.02, 0.05, 0.1, 0.2]


# ============================================================================
# SCENARIO CONFIGURATIONS
# ============================================================================

@dataclass
class ScenarioCase:
    """Definition of a single simulation scenario"""

    scenario_id: str
    initial_size: int
    ticks: int
    growth_interval: int  # 0 = no growth
    scenario_name: str
    description: str


def get_scenarios() -> List[ScenarioCase]:
    """Return the built-in scenarios S001-S005"""
    return [
        ScenarioCase(
            scenario_id="S001",
            initial_size=3,
            ticks=100,
            growth_interval=0,
            scenario_name="Closed trio",
            description="Random likes among alice, bob, carol"
        ),
        ScenarioCase(
            scenario_id="S002",
            initial_size=3,
            ticks=300,
            growth_interval=10,
            scenario_name="Growth to cap",
            description="One member every 10 ticks up to 30"
        ),
        ScenarioCase(
            scenario_id="S003",
            initial_size=10,
            ticks=200,
            growth_interval=0,
            scenario_name="Mid-size economy",
            description="10 members, likes and recovery only"
        ),
        ScenarioCase(
            scenario_id="S004",
            initial_size=30,
            ticks=200,
            growth_interval=0,
            scenario_name="Full population",
            description="30 members at the cap"
        ),
        ScenarioCase(
            scenario_id="S005",
            initial_size=2,
            ticks=100,
            growth_interval=25,
            scenario_name="Pair with slow growth",
            description="Smallest tradeable economy growing slowly"
        ),
    ]


# ============================================================================
# GLOBAL CONFIGURATION
# ============================================================================

class EconomyConfig:
    """Master configuration for PICSY simulations"""

    def __init__(self):
        self.population = PopulationConfig()
        self.solver = SolverConfig()
        self.transfer = TransferConfig()
        self.recovery = RecoveryConfig()
        self.scenarios = get_scenarios()

    def get_parameter_ranges(self) -> Dict[str, List]:
        """Return parameter ranges for exploration"""
        return {
            'gamma': self.recovery.gamma_range,
            'sim_delta': [self.transfer.sim_delta_min, self.transfer.sim_delta_max],
            'population': [self.population.initial_size, self.population.max_members],
        }
