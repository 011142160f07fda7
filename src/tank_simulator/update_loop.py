"""
Simulation Update Loop
======================

Periodic worker that couples the tank physics to the register store.

Each tick:
1. Copies the holding registers in one locked read and decodes setpoints
2. Takes the simulation state lock
3. Advances the physics by one fixed timestep
4. Releases the state lock
5. Writes unix time, level and outflow to the input registers in one
   locked block write

Ticks run on a single dedicated thread, so they never overlap. When a tick
overruns its period, missed deadlines are skipped.

Any exception inside a tick is fatal: the loop stops and ``failed`` is set.
There is no degraded mode for a physical model.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .core.tank import SetpointState, TankPhysics
from .modbus.protocols import ModbusDecoder, ModbusEncoder
from .modbus.register_map import ModbusRegisterMap
from .modbus.store import RegisterFileKind, RegisterStore

logger = logging.getLogger(__name__)


class SimulationFault(RuntimeError):
    """The update loop died; the process must not keep serving stale data."""


@dataclass
class SimulationConfig:
    """Timing of the update loop."""

    period: float = 0.1  # [s] also the integration timestep
    status_interval: float = 5.0  # [s] between console status lines
    join_timeout_sec: float = 2.0

    def validate(self) -> None:
        if not self.period > 0:
            raise ValueError(f"Period must be positive, got {self.period}")
        if self.status_interval < 0:
            raise ValueError(
                f"Status interval cannot be negative: {self.status_interval}"
            )


class UpdateLoop:
    """Runs the tank physics against a register store on a fixed clock."""

    def __init__(
        self,
        store: RegisterStore,
        physics: TankPhysics,
        config: Optional[SimulationConfig] = None,
        register_map: Optional[ModbusRegisterMap] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.physics = physics
        self.config = config or SimulationConfig()
        self.config.validate()
        self.register_map = register_map or ModbusRegisterMap()
        self.clock = clock

        store_geometry = self.store.snapshot().tank.geometry
        if store_geometry != self.physics.config.geometry:
            raise ValueError(
                f"Register store tank {store_geometry} does not match physics "
                f"tank {self.physics.config.geometry}"
            )

        self.encoder = ModbusEncoder()
        self.decoder = ModbusDecoder()

        self._setpoint_addrs = tuple(
            self.register_map.address_of(name)
            for name in ("inflow_a", "inflow_b", "outlet_valve")
        )
        self._output_base = self.register_map.address_of("unix_time")
        if (
            self.register_map.address_of("tank_level") != self._output_base + 2
            or self.register_map.address_of("outflow_rate") != self._output_base + 4
        ):
            raise ValueError("Input register outputs must form one contiguous block")

        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._failed = threading.Event()
        self.error: Optional[BaseException] = None
        self.skipped_ticks = 0

    def decode_setpoints(self) -> SetpointState:
        """Decode setpoints from a single consistent copy of the holding registers."""
        holding = self.store.read(
            RegisterFileKind.HOLDING, 0, len(self.store.holding_registers)
        )
        inflow_a, inflow_b, valve = (
            self.decoder.float32_at(holding, addr) for addr in self._setpoint_addrs
        )
        return SetpointState.clamped(
            inflow_a, inflow_b, valve, self.physics.config.max_inflow
        )

    def tick(self):
        """Execute one simulation step."""
        setpoints = self.decode_setpoints()
        dt = self.config.period

        with self.store.simulation_state() as state:
            state.setpoints = setpoints
            state.tank.level = self.physics.step(
                state.tank.level,
                setpoints.inflow_a,
                setpoints.inflow_b,
                setpoints.outlet_valve,
                dt,
            )
            state.outflow = self.physics.outflow(
                state.tank.level, setpoints.outlet_valve
            )
            state.tick += 1
            state.elapsed += dt
            level, outflow = state.tank.level, state.outflow

        now = int(self.clock()) & 0xFFFFFFFF
        words = [
            *self.encoder.uint32_to_registers(now),
            *self.encoder.array_to_registers([level, outflow]),
        ]
        self.store.write(RegisterFileKind.INPUT, self._output_base, words)

    def start(self):
        """Start ticking on a background thread."""
        if self.is_running:
            logger.warning("Update loop already running")
            return

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="TankUpdateLoop"
        )
        self._thread.start()
        logger.info(f"Update loop started (period={self.config.period * 1000:.0f} ms)")

    def _run(self):
        period = self.config.period
        next_deadline = time.monotonic()

        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                self.error = e
                self._failed.set()
                logger.critical(
                    f"Simulation tick failed: {type(e).__name__}: {e}", exc_info=True
                )
                return

            next_deadline += period
            now = time.monotonic()
            if now > next_deadline:
                missed = int((now - next_deadline) // period) + 1
                self.skipped_ticks += missed
                next_deadline += missed * period
                logger.warning(f"Tick overran its period, skipping {missed} tick(s)")

            self._stop.wait(max(0.0, next_deadline - time.monotonic()))

    def stop(self):
        """Stop ticking and wait for the worker thread."""
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=self.config.join_timeout_sec)
            if self._thread.is_alive():
                logger.warning("Update loop thread did not terminate cleanly")
        self._thread = None

    def raise_if_failed(self):
        """Re-raise a fatal tick error in the calling thread."""
        if self._failed.is_set():
            raise SimulationFault("Update loop stopped") from self.error

    @property
    def failed(self) -> bool:
        return self._failed.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
