"""
Register Store
==============

The Modbus memory map shared between client connections and the
simulation loop.

Each register file and the simulation state is an independently lockable
unit. Locks are held only for the duration of a slice copy, so a reader
never observes a block that mixes words from two different writes.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

import copy
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, List, Sequence

import numpy as np

from ..core.tank import SimulationState, TankConfiguration, TankState
from .exceptions import ExcCodes, ModbusFault
from .register_map import REGISTER_FILE_SIZE


class RegisterFileKind(Enum):
    INPUT = "input"
    HOLDING = "holding"


class RegisterAccess(ABC):
    """
    Register operations the Modbus adapter relies on.

    Implementations raise ``ModbusFault`` for out-of-range access.
    """

    @abstractmethod
    def read_input_registers(self, address: int, count: int) -> List[int]:
        pass

    @abstractmethod
    def read_holding_registers(self, address: int, count: int) -> List[int]:
        pass

    @abstractmethod
    def write_holding_registers(self, address: int, values: Sequence[int]) -> None:
        pass


class RegisterFile:
    """Fixed-length block of 16-bit words guarded by its own lock."""

    def __init__(self, name: str, size: int = REGISTER_FILE_SIZE):
        self.name = name
        self._words = np.zeros(size, dtype=np.uint16)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._words)

    def _check_range(self, address: int, count: int):
        if address < 0 or count < 1 or address + count > len(self._words):
            raise ModbusFault(
                ExcCodes.ILLEGAL_ADDRESS,
                f"{self.name} registers [{address}, {address + count}) "
                f"outside [0, {len(self._words)})",
            )

    def read(self, address: int, count: int) -> List[int]:
        self._check_range(address, count)
        with self._lock:
            return self._words[address : address + count].tolist()

    def write(self, address: int, values: Sequence[int]):
        self._check_range(address, len(values))
        words = np.asarray(values, dtype=np.int64)
        if np.any((words < 0) | (words > 0xFFFF)):
            raise ValueError(f"Register values must fit in 16 bits: {list(values)}")

        with self._lock:
            self._words[address : address + len(words)] = words


class RegisterStore(RegisterAccess):
    """
    Input registers, holding registers and the simulation state.

    Constructed once at startup and handed to both the Modbus server and the
    update loop.
    """

    def __init__(
        self,
        tank_config: TankConfiguration = None,
        size: int = REGISTER_FILE_SIZE,
    ):
        tank_config = tank_config or TankConfiguration()
        self.input_registers = RegisterFile("input", size)
        self.holding_registers = RegisterFile("holding", size)

        self._state = SimulationState(tank=TankState.from_config(tank_config))
        self._state_lock = threading.Lock()

    def _file(self, kind: RegisterFileKind) -> RegisterFile:
        if kind is RegisterFileKind.INPUT:
            return self.input_registers
        return self.holding_registers

    def read(self, kind: RegisterFileKind, address: int, count: int) -> List[int]:
        """
        Copy ``count`` words starting at ``address``.

        Raises:
            ModbusFault: ILLEGAL_ADDRESS if the range leaves the file
        """
        return self._file(kind).read(address, count)

    def write(self, kind: RegisterFileKind, address: int, values: Sequence[int]):
        """
        Overwrite words starting at ``address``.

        The store accepts writes to either file; rejecting client writes to
        input registers is the adapter's policy.

        Raises:
            ModbusFault: ILLEGAL_ADDRESS if the range leaves the file
        """
        self._file(kind).write(address, values)

    def read_input_registers(self, address: int, count: int) -> List[int]:
        return self.read(RegisterFileKind.INPUT, address, count)

    def read_holding_registers(self, address: int, count: int) -> List[int]:
        return self.read(RegisterFileKind.HOLDING, address, count)

    def write_holding_registers(self, address: int, values: Sequence[int]) -> None:
        self.write(RegisterFileKind.HOLDING, address, values)

    @contextmanager
    def simulation_state(self) -> Iterator[SimulationState]:
        """Hold the state lock and yield the live record (update loop only)."""
        with self._state_lock:
            yield self._state

    def snapshot(self) -> SimulationState:
        """Detached copy of the simulation state for diagnostics."""
        with self._state_lock:
            return copy.deepcopy(self._state)
