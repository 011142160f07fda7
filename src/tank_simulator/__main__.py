"""
Main Simulation Orchestrator
============================

Entry point for the single-tank Modbus simulator.

Author: Guilherme F. G. Santos
Date: January 2026
"""

import argparse
import time
import logging
import signal
import sys
from typing import Optional, Tuple
from contextlib import suppress

# Physics engine
from .core import TankConfiguration, TankPhysics

# Modbus
from .modbus import ModbusRegisterMap, ModbusServerConfig, ModbusSlave, RegisterStore

# Update loop
from .update_loop import SimulationConfig, SimulationFault, UpdateLoop

logger = logging.getLogger(__name__)

# Global running flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    """Handle Ctrl+C for clean shutdown."""
    global running
    logger.info("Shutdown signal received. Stopping simulation...")
    running = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tank-simulator", description="Single Tank Modbus/TCP Simulator"
    )
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Modbus bind address")
    parser.add_argument("--port", type=int, default=1502, help="Modbus TCP port")
    parser.add_argument("--unit-id", type=int, default=1, help="Modbus unit id")
    parser.add_argument(
        "--period", type=float, default=0.1, help="Update period and timestep [seconds]"
    )
    parser.add_argument(
        "--status-interval",
        type=float,
        default=5.0,
        help="Seconds between status lines (0 disables)",
    )
    parser.add_argument("--tank-height", type=float, default=5.0, help="Tank height [m]")
    parser.add_argument(
        "--area", type=float, default=0.4, help="Tank cross section [m²]"
    )
    parser.add_argument(
        "--outlet-radius", type=float, default=0.25, help="Outlet pipe radius [m]"
    )
    parser.add_argument(
        "--initial-level", type=float, default=0.0, help="Starting level [m]"
    )
    parser.add_argument(
        "--max-inflow", type=float, default=10.0, help="Inflow setpoint limit [m³/s]"
    )
    parser.add_argument("--inflow-a", type=float, default=0.0, help="Initial inlet A flow")
    parser.add_argument("--inflow-b", type=float, default=0.0, help="Initial inlet B flow")
    parser.add_argument(
        "--valve", type=float, default=0.0, help="Initial outlet valve opening [0-1]"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    parser.add_argument(
        "--show-register-map",
        action="store_true",
        help="Print the register map and exit",
    )
    return parser


def build_configs(
    args: argparse.Namespace,
) -> Tuple[TankConfiguration, ModbusServerConfig, SimulationConfig]:
    """
    Turn parsed arguments into validated configuration objects.

    Raises:
        ValueError: If any setting is inconsistent
    """
    tank_config = TankConfiguration(
        tank_height=args.tank_height,
        cross_section_area=args.area,
        outlet_radius=args.outlet_radius,
        initial_level=args.initial_level,
        max_inflow=args.max_inflow,
    )
    modbus_config = ModbusServerConfig(
        host=args.host,
        port=args.port,
        unit_id=args.unit_id,
    )
    sim_config = SimulationConfig(
        period=args.period,
        status_interval=args.status_interval,
    )

    tank_config.validate()
    modbus_config.validate()
    sim_config.validate()

    return tank_config, modbus_config, sim_config


def log_status(store: RegisterStore, physics: Optional[TankPhysics] = None):
    """Log one human-readable status line, with the settling level if known."""
    state = store.snapshot()
    line = (
        f"t={state.elapsed:.1f}s | "
        f"level={state.tank.level:.3f}m | "
        f"inflow_a={state.setpoints.inflow_a:.3f} | "
        f"inflow_b={state.setpoints.inflow_b:.3f} | "
        f"valve={state.setpoints.outlet_valve:.2f} | "
        f"outflow={state.outflow:.3f}"
    )
    if physics is not None:
        target = physics.steady_state_level(
            state.setpoints.total_inflow, state.setpoints.outlet_valve
        )
        line += f" | steady_state={target:.3f}m"
    logger.info(line)


def main(argv: Optional[list] = None) -> int:
    global running

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.show_register_map:
        ModbusRegisterMap().print_register_map()
        return 0

    logger.info("=" * 70)
    logger.info("SINGLE TANK MODBUS SIMULATOR")
    logger.info("=" * 70)

    # ========================================================================
    # PHASE 1: Configuration and physics
    # ========================================================================
    try:
        tank_config, modbus_config, sim_config = build_configs(args)
        physics = TankPhysics(tank_config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    running = True

    # ========================================================================
    # PHASE 2: Register store and initial setpoints
    # ========================================================================
    register_map = ModbusRegisterMap()
    store = RegisterStore(tank_config)
    slave = ModbusSlave(store, register_map, modbus_config)

    slave.write_holding_register("inflow_a", args.inflow_a)
    slave.write_holding_register("inflow_b", args.inflow_b)
    slave.write_holding_register("outlet_valve", args.valve)

    # ========================================================================
    # PHASE 3: Update loop
    # ========================================================================
    update_loop = UpdateLoop(store, physics, sim_config, register_map)
    update_loop.start()

    # ========================================================================
    # PHASE 4: Modbus server
    # ========================================================================
    logger.info(f"Starting up server on {modbus_config.host}:{modbus_config.port}")
    try:
        slave.start(blocking=False)
    except RuntimeError as e:
        logger.error(f"Modbus server startup failed: {e}")
        update_loop.stop()
        return 1

    # ========================================================================
    # PHASE 5: Supervise until shutdown
    # ========================================================================
    logger.info("Press Ctrl+C to stop gracefully")
    exit_code = 0
    last_status = time.monotonic()

    try:
        while running:
            time.sleep(0.2)
            update_loop.raise_if_failed()

            if not slave.is_running:
                logger.error("Modbus server stopped unexpectedly")
                exit_code = 1
                break

            now = time.monotonic()
            if sim_config.status_interval and now - last_status >= sim_config.status_interval:
                log_status(store, physics)
                last_status = now

    except SimulationFault as e:
        logger.critical(f"{e}: {e.__cause__!r}")
        exit_code = 1

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")

    finally:
        logger.info("Shutting down...")
        update_loop.stop()
        with suppress(Exception):
            slave.stop()
        logger.info("Simulation stopped")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
