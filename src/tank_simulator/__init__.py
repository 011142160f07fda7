"""
Single Tank Modbus Simulator
============================

A liquid tank with two inlets and an outlet pipe, exposed as Modbus/TCP
registers for testing SCADA/HMI masters against a deterministic plant.

Run with ``python -m tank_simulator``.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Guilherme F. G. Santos"
