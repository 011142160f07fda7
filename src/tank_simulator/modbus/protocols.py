"""
Modbus Protocol Encoding/Decoding
==================================

Data conversion utilities for Modbus register encoding.

This module handles ONLY data format conversion:
- Python floats ↔ Modbus register pairs (IEEE 754 single precision)
- Python ints ↔ Modbus register pairs (unsigned 32-bit)

Word order is fixed: high word first, low word second. The layout is a
wire convention and never depends on the host byte order.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

import struct
import numpy as np
from typing import List, Sequence, Tuple

REGISTER_MAX = 0xFFFF


class ModbusEncoder:
    """
    Encoder for converting Python values to Modbus register format.

    Modbus uses 16-bit registers. Multi-word values (float32, uint32)
    are stored in consecutive registers.

    Byte Order: Big-endian (network byte order) - Modbus standard
    """

    @staticmethod
    def float32_to_registers(value: float) -> Tuple[int, int]:
        """
        Convert Python float to two 16-bit Modbus registers.

        Args:
            value: Python float (rounded to single precision)

        Returns:
            Tuple of two 16-bit register values (high word, low word)

        Example:
            >>> ModbusEncoder.float32_to_registers(1.0)
            (16256, 0)
        """
        packed = struct.pack(">f", value)
        high, low = struct.unpack(">HH", packed)
        return high, low

    @staticmethod
    def uint32_to_registers(value: int) -> Tuple[int, int]:
        """
        Split an unsigned 32-bit integer into (high word, low word).

        Raises:
            ValueError: If value out of range
        """
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"uint32 value {value} out of range [0, 4294967295]")

        return (value >> 16) & REGISTER_MAX, value & REGISTER_MAX

    @staticmethod
    def array_to_registers(values: Sequence[float]) -> List[int]:
        """Encode a sequence of floats as consecutive float32 register pairs."""
        registers = []
        for value in np.asarray(values, dtype=np.float64):
            registers.extend(ModbusEncoder.float32_to_registers(float(value)))
        return registers


class ModbusDecoder:
    """
    Decoder for converting Modbus register format to Python values.

    Performs the inverse operations of ModbusEncoder.
    """

    @staticmethod
    def registers_to_float32(high: int, low: int) -> float:
        """
        Convert two 16-bit Modbus registers to Python float.

        Args:
            high: High 16-bit register
            low: Low 16-bit register

        Returns:
            Python float (IEEE 754 single precision)

        Example:
            >>> ModbusDecoder.registers_to_float32(16256, 0)
            1.0
        """
        packed = struct.pack(">HH", high, low)
        (result,) = struct.unpack(">f", packed)
        return result

    @staticmethod
    def registers_to_uint32(high: int, low: int) -> int:
        """Join (high word, low word) into an unsigned 32-bit integer."""
        return ((high & REGISTER_MAX) << 16) | (low & REGISTER_MAX)

    @staticmethod
    def float32_at(registers: Sequence[int], address: int) -> float:
        """Decode the float32 stored at ``address`` and ``address + 1``."""
        return ModbusDecoder.registers_to_float32(
            registers[address], registers[address + 1]
        )
