"""
Physics Engine Core Package
===========================

Single-tank hydraulics simulation.

USAGE EXAMPLE
============

```python
from tank_simulator.core import TankPhysics, TankConfiguration

physics = TankPhysics(TankConfiguration())

level = 0.0
for _ in range(100):
    level = physics.step(level, inflow_a=0.5, inflow_b=0.2, valve_opening=0.5, dt=0.1)
```

PURE PHYSICS ARCHITECTURE
=========================

WHAT THIS MODULE DOES:
- Models Torricelli outflow and the tank mass balance
- Integrates the level over a fixed timestep
- Enforces the physical tank bounds

WHAT THIS MODULE DOES NOT DO:
- NO register encoding or Modbus access
- NO locking or scheduling (see ``tank_simulator.update_loop``)
- NO control algorithms

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

from .tank import (
    GRAVITY,
    SetpointState,
    SimulationState,
    TankConfiguration,
    TankPhysics,
    TankState,
    outflow_rate,
)

__all__ = [
    "GRAVITY",
    "SetpointState",
    "SimulationState",
    "TankConfiguration",
    "TankPhysics",
    "TankState",
    "outflow_rate",
]
