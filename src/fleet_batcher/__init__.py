"""Fleet Batcher.

Batch scheduling and memory-aware thread allocation for a fleet of worker
nodes running extract/replenish/stabilize operations against one target.
"""

__version__ = "0.1.0"
