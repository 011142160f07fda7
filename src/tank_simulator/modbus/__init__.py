"""
Modbus Interface Package
=========================

Modbus/TCP access to the tank simulation.

Components:
- register_map.py: Address space definition
- protocols.py: float32/uint32 register encoding
- store.py: Lock-protected register files and simulation state
- adapter.py: Request policy (function codes, address checks, write log)
- slave.py: pymodbus binding and TCP server lifecycle

Usage Example:
>>> from tank_simulator.modbus import ModbusSlave, RegisterStore
>>>
>>> store = RegisterStore()
>>> slave = ModbusSlave(store)
>>> slave.start(blocking=False)
>>> slave.write_holding_register("inflow_a", 0.5)
>>> level = slave.read_input_register("tank_level")

Architecture:

┌─────────────────┐
│   PLC / SCADA   │  External Modbus master
└────────┬────────┘
         │ Modbus/TCP
┌────────▼────────┐
│  ModbusSlave    │  pymodbus server + RegisterStoreContext
└────────┬────────┘
┌────────▼────────┐
│ModbusAccessAdapter│ Function-code and address policy
└────────┬────────┘
┌────────▼────────┐
│  RegisterStore  │◄── UpdateLoop (physics, every 100 ms)
└─────────────────┘

Dependencies:
- pymodbus: Python Modbus library
  Install: pip install pymodbus

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

from .register_map import (
    REGISTER_FILE_SIZE,
    ModbusRegisterMap,
    RegisterDefinition,
    RegisterType,
)

from .protocols import ModbusEncoder, ModbusDecoder

from .exceptions import ExcCodes, ModbusFault

from .store import RegisterAccess, RegisterFile, RegisterFileKind, RegisterStore

from .adapter import FunctionCode, ModbusAccessAdapter, ModbusRequest, ModbusResponse

from .slave import ModbusSlave, ModbusServerConfig, RegisterStoreContext

__all__ = [
    # Register mapping
    "REGISTER_FILE_SIZE",
    "ModbusRegisterMap",
    "RegisterDefinition",
    "RegisterType",
    # Encoding/decoding
    "ModbusEncoder",
    "ModbusDecoder",
    # Faults
    "ExcCodes",
    "ModbusFault",
    # Storage
    "RegisterAccess",
    "RegisterFile",
    "RegisterFileKind",
    "RegisterStore",
    # Request handling
    "FunctionCode",
    "ModbusAccessAdapter",
    "ModbusRequest",
    "ModbusResponse",
    # Server
    "ModbusSlave",
    "ModbusServerConfig",
    "RegisterStoreContext",
]
