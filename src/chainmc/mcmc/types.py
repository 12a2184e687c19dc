"""
Chain Data Structures.

- ChainState: Mutable run state owned by one MarkovChain
"""

import math
from dataclasses import dataclass


@dataclass
class ChainState:
    """
    Run state of one chain, persisted across calls to MarkovChain.run().

    current_length is the number of iterations completed over the chain's
    lifetime. stop_requested is the only field written from outside the
    sampling thread.
    """
    current_length: int = 0
    initial_score: float = math.nan
    current_score: float = math.nan
    best_score: float = math.nan
    stop_requested: bool = False
    is_stopped: bool = False
