"""PlantSim: deterministic lifecycle simulation of owned plants.

A transactional state machine over a garden of plant entities:
  - Water depletes in fixed steps over elapsed time; an empty plant dies
  - Growth stages (SEED → SPROUT → GROWING → BLOOMING) follow plant age only
  - Owners seed for an entry price, water, and harvest blooms for a reward
  - Every operation is all-or-nothing against the registry and ledger
  - Time is always an explicit argument; no wall clock is read
"""

__version__ = "0.1.0"
