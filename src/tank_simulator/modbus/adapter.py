"""
Modbus Access Adapter
=====================

Translates decoded Modbus requests into register store operations.

Policy enforced here:
- Only FC 03, 04, 06 and 16 are served; anything else is ILLEGAL_FUNCTION
- Input registers are never writable by clients
- Write values must fit in 16 bits (ILLEGAL_VALUE)

Every accepted write is logged for observability; logging never changes
the response.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from .exceptions import ExcCodes, ModbusFault
from .protocols import REGISTER_MAX
from .store import RegisterAccess

logger = logging.getLogger(__name__)


class FunctionCode(IntEnum):
    """Modbus function codes served by the simulator."""

    READ_HOLDING_REGISTERS = 0x03
    READ_INPUT_REGISTERS = 0x04
    WRITE_SINGLE_REGISTER = 0x06
    WRITE_MULTIPLE_REGISTERS = 0x10


SUPPORTED_FUNCTIONS = frozenset(int(fc) for fc in FunctionCode)


@dataclass(frozen=True)
class ModbusRequest:
    """
    A decoded request as handed over by the transport.

    ``function`` is a raw int so that unsupported codes can be represented.
    Reads carry ``count``; writes carry ``values``.
    """

    function: int
    address: int
    count: int = 0
    values: Tuple[int, ...] = ()

    @classmethod
    def read_input(cls, address: int, count: int) -> "ModbusRequest":
        return cls(FunctionCode.READ_INPUT_REGISTERS, address, count=count)

    @classmethod
    def read_holding(cls, address: int, count: int) -> "ModbusRequest":
        return cls(FunctionCode.READ_HOLDING_REGISTERS, address, count=count)

    @classmethod
    def write_single(cls, address: int, value: int) -> "ModbusRequest":
        return cls(FunctionCode.WRITE_SINGLE_REGISTER, address, count=1, values=(value,))

    @classmethod
    def write_multiple(cls, address: int, values) -> "ModbusRequest":
        values = tuple(values)
        return cls(
            FunctionCode.WRITE_MULTIPLE_REGISTERS,
            address,
            count=len(values),
            values=values,
        )


@dataclass(frozen=True)
class ModbusResponse:
    """
    Decoded response.

    Reads return ``values``; write single echoes address and value;
    write multiple returns address and the number of registers written.
    """

    function: int
    address: int
    values: Tuple[int, ...] = ()
    count: int = 0


class ModbusAccessAdapter:
    """Serves one decoded request at a time against a ``RegisterAccess``."""

    def __init__(self, registers: RegisterAccess):
        self.registers = registers

    def handle(self, request: ModbusRequest) -> ModbusResponse:
        """
        Execute a request.

        Raises:
            ModbusFault: ILLEGAL_FUNCTION, ILLEGAL_ADDRESS or
                ILLEGAL_VALUE
        """
        function = request.function

        if function == FunctionCode.READ_INPUT_REGISTERS:
            values = self.registers.read_input_registers(request.address, request.count)
            return ModbusResponse(function, request.address, tuple(values), len(values))

        if function == FunctionCode.READ_HOLDING_REGISTERS:
            values = self.registers.read_holding_registers(
                request.address, request.count
            )
            return ModbusResponse(function, request.address, tuple(values), len(values))

        if function == FunctionCode.WRITE_SINGLE_REGISTER:
            value = self._write(request.address, request.values[:1])[0]
            return ModbusResponse(function, request.address, (value,), 1)

        if function == FunctionCode.WRITE_MULTIPLE_REGISTERS:
            values = self._write(request.address, request.values)
            return ModbusResponse(function, request.address, count=len(values))

        logger.warning(
            f"Rejected unsupported function code 0x{int(function):02X} "
            f"(address={request.address})"
        )
        raise ModbusFault(
            ExcCodes.ILLEGAL_FUNCTION, f"Function code {function} not supported"
        )

    def _write(self, address: int, values) -> Tuple[int, ...]:
        values = tuple(int(v) for v in values)
        if not values:
            raise ModbusFault(ExcCodes.ILLEGAL_ADDRESS, "Empty write")
        if any(not 0 <= v <= REGISTER_MAX for v in values):
            raise ModbusFault(
                ExcCodes.ILLEGAL_VALUE, f"Values out of range: {values}"
            )

        self.registers.write_holding_registers(address, values)
        logger.info(f"Holding registers written: address={address} values={list(values)}")
        return values
