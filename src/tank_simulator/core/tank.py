"""
Tank Hydraulics Module
======================

Single tank with two inlets and one outlet pipe.

THEORETICAL FOUNDATION
=====================

1. Torricelli outflow through the outlet pipe:
   Q_out = v · √(2·g·h) · π·r²

   Where:
   - v: Valve opening (0 = closed, 1 = fully open)
   - g: Gravitational acceleration [m/s²]
   - h: Liquid level above the outlet [m]
   - r: Outlet pipe radius [m]

2. Mass balance (incompressible liquid, constant cross section):
   A · dh/dt = Q_a + Q_b - Q_out

3. Explicit Euler integration over a fixed timestep, clamped to the
   physical tank bounds [0, H].

4. Steady state (dh/dt = 0):
   h* = (Q_in / (v·π·r²))² / (2·g)

PURE PHYSICS ARCHITECTURE
=========================

Everything here is deterministic: the same inputs always produce the same
level. No I/O, no locking, no register encoding.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

import numpy as np
from dataclasses import dataclass, field

GRAVITY = 9.81  # [m/s²]


@dataclass
class TankConfiguration:
    """
    Geometry and operating limits of the tank.

    Attributes:
        tank_height: Height of the tank [m]
        cross_section_area: Horizontal cross section [m²]
        outlet_radius: Radius of the outlet pipe [m]
        initial_level: Liquid level at startup [m]
        max_inflow: Upper bound applied to each inflow setpoint [m³/s]
    """

    tank_height: float = 5.0  # [m]
    cross_section_area: float = 0.4  # [m²]
    outlet_radius: float = 0.25  # [m]
    initial_level: float = 0.0  # [m]
    max_inflow: float = 10.0  # [m³/s]

    def validate(self) -> None:
        """Validate configuration consistency."""
        for name in ("tank_height", "cross_section_area", "outlet_radius", "max_inflow"):
            value = getattr(self, name)
            if not np.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if not 0.0 <= self.initial_level <= self.tank_height:
            raise ValueError(
                f"Initial level {self.initial_level} m outside tank "
                f"[0, {self.tank_height}] m"
            )

    @property
    def outlet_area(self) -> float:
        """Outlet pipe cross section [m²]."""
        return np.pi * self.outlet_radius**2

    @property
    def geometry(self) -> tuple:
        """(tank_height, cross_section_area, outlet_radius)"""
        return (self.tank_height, self.cross_section_area, self.outlet_radius)


@dataclass
class TankState:
    """Physical state of the tank. Mutated only by the update loop."""

    level: float = 0.0  # [m]
    cross_section_area: float = 0.4  # [m²]
    tank_height: float = 5.0  # [m]
    outlet_radius: float = 0.25  # [m]

    @property
    def geometry(self) -> tuple:
        return (self.tank_height, self.cross_section_area, self.outlet_radius)

    @classmethod
    def from_config(cls, config: TankConfiguration) -> "TankState":
        return cls(
            level=config.initial_level,
            cross_section_area=config.cross_section_area,
            tank_height=config.tank_height,
            outlet_radius=config.outlet_radius,
        )


@dataclass
class SetpointState:
    """
    Setpoints decoded from the holding registers.

    CRITICAL: values are sanitized on construction through ``clamped``;
    the physics never sees NaN or infinities.
    """

    inflow_a: float = 0.0  # [m³/s]
    inflow_b: float = 0.0  # [m³/s]
    outlet_valve: float = 0.0  # [-]

    @classmethod
    def clamped(
        cls, inflow_a: float, inflow_b: float, outlet_valve: float, max_inflow: float
    ) -> "SetpointState":
        """Build a setpoint record with every value forced into its valid range."""
        return cls(
            inflow_a=_clamp_finite(inflow_a, 0.0, max_inflow),
            inflow_b=_clamp_finite(inflow_b, 0.0, max_inflow),
            outlet_valve=_clamp_finite(outlet_valve, 0.0, 1.0),
        )

    @property
    def total_inflow(self) -> float:
        return self.inflow_a + self.inflow_b


@dataclass
class SimulationState:
    """Combined record guarded by the register store's state lock."""

    tank: TankState = field(default_factory=TankState)
    setpoints: SetpointState = field(default_factory=SetpointState)
    outflow: float = 0.0  # [m³/s] at the last tick
    tick: int = 0
    elapsed: float = 0.0  # [s] simulated time


def _clamp_finite(value: float, lower: float, upper: float) -> float:
    if not np.isfinite(value):
        return 0.0
    return float(np.clip(value, lower, upper))


def outflow_rate(level: float, valve_opening: float, outlet_radius: float) -> float:
    """
    Torricelli outflow [m³/s].

    A non-positive level yields zero flow; the square root of a negative
    head is never taken.
    """
    if level <= 0.0:
        return 0.0
    return valve_opening * np.sqrt(2.0 * GRAVITY * level) * np.pi * outlet_radius**2


class TankPhysics:
    """
    Explicit Euler integrator for the tank level.

    Pure model - holds only the immutable geometry.
    """

    def __init__(self, config: TankConfiguration):
        config.validate()
        self.config = config

    def outflow(self, level: float, valve_opening: float) -> float:
        return float(outflow_rate(level, valve_opening, self.config.outlet_radius))

    def net_flow(
        self, level: float, inflow_a: float, inflow_b: float, valve_opening: float
    ) -> float:
        """Inflow minus outflow [m³/s]."""
        return inflow_a + inflow_b - self.outflow(level, valve_opening)

    def step(
        self,
        level: float,
        inflow_a: float,
        inflow_b: float,
        valve_opening: float,
        dt: float,
    ) -> float:
        """
        Advance the liquid level by one timestep.

        Args:
            level: Current level [m]
            inflow_a: Inlet A flow [m³/s]
            inflow_b: Inlet B flow [m³/s]
            valve_opening: Outlet valve opening [0-1]
            dt: Timestep [s]

        Returns:
            New level [m], clamped to [0, tank_height]
        """
        q_net = self.net_flow(level, inflow_a, inflow_b, valve_opening)
        new_level = level + dt * q_net / self.config.cross_section_area
        return float(np.clip(new_level, 0.0, self.config.tank_height))

    def steady_state_level(self, total_inflow: float, valve_opening: float) -> float:
        """
        Equilibrium level for a constant inflow and valve opening.

        A closed valve with any inflow fills the tank; no inflow drains it.
        """
        if total_inflow <= 0.0:
            return 0.0
        if valve_opening <= 0.0:
            return self.config.tank_height

        head = (total_inflow / (valve_opening * self.config.outlet_area)) ** 2 / (
            2.0 * GRAVITY
        )
        return float(min(head, self.config.tank_height))
