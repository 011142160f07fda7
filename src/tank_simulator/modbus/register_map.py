"""
Modbus Register Map
===================

Defines where the tank simulation lives in the Modbus address space.

This module contains ONLY the register layout - it does not:
- Store register values
- Implement physics
- Enforce setpoint limits

Register Types:
- Input Registers (FC 04): Read-only simulation outputs
- Holding Registers (FC 03/06/16): Read/write setpoints

Register Encoding:
- Floats use IEEE 754 single-precision (32-bit) in 2 consecutive registers
- uint32 values occupy 2 consecutive registers
- Word order: high word first (network byte order)

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

from dataclasses import dataclass
from typing import List, Optional
from enum import IntEnum

# Every register file holds exactly this many 16-bit words
REGISTER_FILE_SIZE = 10


class RegisterType(IntEnum):
    """Modbus register types backed by the simulator."""

    INPUT_REGISTER = 3  # Analog input (read-only)
    HOLDING_REGISTER = 4  # Analog output (read/write)


@dataclass(frozen=True)
class RegisterDefinition:
    """
    Definition of a register pair.

    Attributes:
        address: Starting register address (0-based)
        name: Human-readable identifier
        register_type: Input register or holding register
        data_type: 'float32' or 'uint32'
        units: Physical units (e.g., 'm', 'm³/s')
        description: What this register represents
    """

    address: int
    name: str
    register_type: RegisterType
    data_type: str
    units: str
    description: str

    def validate(self, file_size: int = REGISTER_FILE_SIZE):
        """Validate register definition against the register file size."""
        if self.data_type not in ("float32", "uint32"):
            raise ValueError(f"Unknown data type: {self.data_type}")

        if self.address < 0 or self.address + self.size_words > file_size:
            raise ValueError(
                f"Register {self.name} at {self.address} does not fit "
                f"in a {file_size}-word register file"
            )

    @property
    def size_words(self) -> int:
        """Number of 16-bit words this register occupies."""
        return 2

    @property
    def read_only(self) -> bool:
        return self.register_type == RegisterType.INPUT_REGISTER


class ModbusRegisterMap:
    """
    Register layout for the single-tank simulator.

    Input registers:
        0-1  unix_time      uint32  Wall clock at the last tick [s]
        2-3  tank_level     float32 Liquid height [m]
        4-5  outflow_rate   float32 Outlet flow [m³/s]

    Holding registers:
        2-3  inflow_a       float32 Inlet A flow [m³/s]
        4-5  inflow_b       float32 Inlet B flow [m³/s]
        6-7  outlet_valve   float32 Outlet valve opening [0-1]
    """

    def __init__(self, file_size: int = REGISTER_FILE_SIZE):
        self.file_size = file_size
        self.input_registers: List[RegisterDefinition] = []
        self.holding_registers: List[RegisterDefinition] = []

        self._define_input_registers()
        self._define_holding_registers()

        self._validate_all()

    def _define_input_registers(self):
        self.input_registers.extend(
            [
                RegisterDefinition(
                    address=0,  # 30001-30002 in Modbus addressing
                    name="unix_time",
                    register_type=RegisterType.INPUT_REGISTER,
                    data_type="uint32",
                    units="s",
                    description="Unix time of the last simulation tick",
                ),
                RegisterDefinition(
                    address=2,  # 30003-30004
                    name="tank_level",
                    register_type=RegisterType.INPUT_REGISTER,
                    data_type="float32",
                    units="m",
                    description="Liquid level in the tank",
                ),
                RegisterDefinition(
                    address=4,  # 30005-30006
                    name="outflow_rate",
                    register_type=RegisterType.INPUT_REGISTER,
                    data_type="float32",
                    units="m³/s",
                    description="Flow through the outlet pipe",
                ),
            ]
        )

    def _define_holding_registers(self):
        self.holding_registers.extend(
            [
                RegisterDefinition(
                    address=2,  # 40003-40004
                    name="inflow_a",
                    register_type=RegisterType.HOLDING_REGISTER,
                    data_type="float32",
                    units="m³/s",
                    description="Inlet A flow setpoint",
                ),
                RegisterDefinition(
                    address=4,  # 40005-40006
                    name="inflow_b",
                    register_type=RegisterType.HOLDING_REGISTER,
                    data_type="float32",
                    units="m³/s",
                    description="Inlet B flow setpoint",
                ),
                RegisterDefinition(
                    address=6,  # 40007-40008
                    name="outlet_valve",
                    register_type=RegisterType.HOLDING_REGISTER,
                    data_type="float32",
                    units="-",
                    description="Outlet valve opening (0=closed, 1=open)",
                ),
            ]
        )

    def _validate_all(self):
        """Validate all register definitions and check for conflicts."""
        for reg in self.input_registers + self.holding_registers:
            reg.validate(self.file_size)

        self._check_address_conflicts(self.input_registers, "Input registers")
        self._check_address_conflicts(self.holding_registers, "Holding registers")

    def _check_address_conflicts(
        self, registers: List[RegisterDefinition], type_name: str
    ):
        """Check for overlapping register addresses."""
        address_ranges = sorted(
            (reg.address, reg.address + reg.size_words - 1, reg.name)
            for reg in registers
        )

        for (curr_start, curr_end, curr_name), (next_start, next_end, next_name) in zip(
            address_ranges, address_ranges[1:]
        ):
            if curr_end >= next_start:
                raise ValueError(
                    f"{type_name} address conflict: {curr_name} "
                    f"[{curr_start}-{curr_end}] overlaps with {next_name} "
                    f"[{next_start}-{next_end}]"
                )

    def get_register_by_name(self, name: str) -> Optional[RegisterDefinition]:
        """
        Find register definition by name.

        Args:
            name: Register name

        Returns:
            RegisterDefinition if found, None otherwise
        """
        for reg in self.input_registers + self.holding_registers:
            if reg.name == name:
                return reg

        return None

    def address_of(self, name: str) -> int:
        """Address of a named register; ``KeyError`` when it is not mapped."""
        reg = self.get_register_by_name(name)
        if reg is None:
            raise KeyError(name)
        return reg.address

    def print_register_map(self):
        """Print complete register map for documentation."""
        print("=" * 80)
        print("MODBUS REGISTER MAP")
        print("=" * 80)

        sections = (
            ("INPUT REGISTERS (Read-Only Simulation Outputs)", 30001, self.input_registers),
            ("HOLDING REGISTERS (Read/Write Setpoints)", 40001, self.holding_registers),
        )
        for title, base, registers in sections:
            print(f"\n{title}")
            print("-" * 80)
            print(
                f"{'Address':<12} {'Name':<15} {'Type':<10} {'Units':<8} {'Description':<30}"
            )
            print("-" * 80)
            for reg in registers:
                modbus_addr = base + reg.address
                addr_str = f"{modbus_addr}-{modbus_addr + 1}"
                print(
                    f"{addr_str:<12} {reg.name:<15} {reg.data_type:<10} {reg.units:<8} {reg.description:<30}"
                )

        print("\n" + "=" * 80)
