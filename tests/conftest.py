# tests/conftest.py
"""Shared pytest fixtures for the tank simulator tests.

Foundation components (encoding, register store, physics) are tested with
real dependencies. The Modbus adapter is additionally tested against an
in-memory register double with injectable faults, so request policy can be
checked without any timing or locking involved.
"""

from typing import List, Optional, Sequence

import pytest

from tank_simulator.core import TankConfiguration, TankPhysics
from tank_simulator.modbus import (
    ExcCodes,
    ModbusAccessAdapter,
    ModbusFault,
    ModbusRegisterMap,
    RegisterAccess,
    RegisterStore,
)
from tank_simulator.update_loop import SimulationConfig, UpdateLoop

FIXED_UNIX_TIME = 1_700_000_000.0


class InMemoryRegisters(RegisterAccess):
    """Plain-list register double.

    Set ``fault`` to make every subsequent call raise that exception code.
    Every call is recorded in ``calls``.
    """

    def __init__(self, size: int = 10):
        self.input = [0] * size
        self.holding = [0] * size
        self.fault: Optional[ExcCodes] = None
        self.calls: List[tuple] = []

    def _check(self, words: list, address: int, count: int):
        if self.fault is not None:
            raise ModbusFault(self.fault)
        if address < 0 or count < 1 or address + count > len(words):
            raise ModbusFault(ExcCodes.ILLEGAL_ADDRESS)

    def read_input_registers(self, address: int, count: int) -> List[int]:
        self.calls.append(("read_input", address, count))
        self._check(self.input, address, count)
        return self.input[address : address + count]

    def read_holding_registers(self, address: int, count: int) -> List[int]:
        self.calls.append(("read_holding", address, count))
        self._check(self.holding, address, count)
        return self.holding[address : address + count]

    def write_holding_registers(self, address: int, values: Sequence[int]) -> None:
        self.calls.append(("write_holding", address, tuple(values)))
        self._check(self.holding, address, len(values))
        self.holding[address : address + len(values)] = list(values)


# ----------------------------------------------------------------
# Register fixtures
# ----------------------------------------------------------------
@pytest.fixture
def fake_registers() -> InMemoryRegisters:
    """Provide a fresh in-memory register double."""
    return InMemoryRegisters()


@pytest.fixture
def fake_adapter(fake_registers) -> ModbusAccessAdapter:
    """Provide an adapter wired to the register double."""
    return ModbusAccessAdapter(fake_registers)


@pytest.fixture
def tank_config() -> TankConfiguration:
    """Provide the default tank geometry."""
    return TankConfiguration()


@pytest.fixture
def store(tank_config) -> RegisterStore:
    """Provide a real register store with default geometry."""
    return RegisterStore(tank_config)


@pytest.fixture
def adapter(store) -> ModbusAccessAdapter:
    """Provide an adapter wired to the real register store."""
    return ModbusAccessAdapter(store)


# ----------------------------------------------------------------
# Simulation fixtures
# ----------------------------------------------------------------
@pytest.fixture
def physics(tank_config) -> TankPhysics:
    return TankPhysics(tank_config)


@pytest.fixture
def update_loop(store, physics):
    """Provide an update loop with a frozen clock; stopped after the test."""
    loop = UpdateLoop(
        store,
        physics,
        SimulationConfig(period=0.1),
        ModbusRegisterMap(),
        clock=lambda: FIXED_UNIX_TIME,
    )
    yield loop
    loop.stop()
