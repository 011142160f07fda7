"""
Modbus Fault Taxonomy
=====================

Request-scoped faults are raised as ``ModbusFault`` and surface to the
remote client as a Modbus exception response. They never reach the
simulation loop.

Exception codes are pymodbus' own ``ExcCodes``; its request handlers only
build an exception response for values of that type.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

from pymodbus.constants import ExcCodes


class ModbusFault(Exception):
    """A request could not be served; carries the Modbus exception code."""

    def __init__(self, code: ExcCodes, message: str = ""):
        self.code = ExcCodes(code)
        super().__init__(message or self.code.name)
