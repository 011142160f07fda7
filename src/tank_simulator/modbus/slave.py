"""
Modbus TCP Slave Server
=====================================================

pymodbus TCP server bound to the tank register store, with an explicit
async lifecycle running on a background thread.

The register store is plugged into pymodbus as a device context: every
datastore call pymodbus makes is turned into a ``ModbusRequest`` for the
access adapter, and adapter faults are handed back as Modbus exception
codes.

Author: Guilherme F. G. Santos
Date: January 2026
License: MIT
"""

import asyncio
import threading
import logging
from typing import List, Optional, Sequence, Union
from dataclasses import dataclass
from contextlib import suppress

# pymodbus server stack
from pymodbus import ModbusDeviceIdentification
from pymodbus.server import StartAsyncTcpServer, ServerAsyncStop
from pymodbus.datastore import ModbusBaseDeviceContext, ModbusServerContext

from .adapter import FunctionCode, ModbusAccessAdapter, ModbusRequest
from .exceptions import ExcCodes, ModbusFault
from .protocols import ModbusDecoder, ModbusEncoder
from .register_map import ModbusRegisterMap, RegisterType
from .store import RegisterFileKind, RegisterStore

logger = logging.getLogger(__name__)

# pymodbus reads the written range back to build write responses
_ECHO_READS = {
    FunctionCode.WRITE_SINGLE_REGISTER: FunctionCode.READ_HOLDING_REGISTERS,
    FunctionCode.WRITE_MULTIPLE_REGISTERS: FunctionCode.READ_HOLDING_REGISTERS,
}


@dataclass
class ModbusServerConfig:
    """Configuration for Modbus TCP server."""

    host: str = "0.0.0.0"
    port: int = 1502
    unit_id: int = 1

    # Server identification
    vendor_name: str = "Tank Simulator"
    product_code: str = "TANK-1"
    vendor_url: str = "https://github.com/tank-modbus-simulator"
    product_name: str = "Single Tank Physics Simulator"
    model_name: str = "Virtual PLC v1.0"
    version: str = "1.0.0"

    # Timeouts
    startup_timeout_sec: float = 5.0
    shutdown_timeout_sec: float = 3.0

    def validate(self) -> None:
        if not 0 < self.port <= 65535:
            raise ValueError(f"Port {self.port} out of range [1, 65535]")
        if not 0 <= self.unit_id <= 247:
            raise ValueError(f"Unit id {self.unit_id} out of range [0, 247]")


class RegisterStoreContext(ModbusBaseDeviceContext):
    """
    pymodbus device context backed by the access adapter.

    Faults are returned as pymodbus ``ExcCodes`` instead of values,
    which pymodbus turns into an exception response.
    """

    def __init__(self, adapter: ModbusAccessAdapter):
        self.adapter = adapter

    def __str__(self):
        return "RegisterStoreContext"

    def reset(self):
        """Registers live for the process lifetime; nothing to reset."""

    def getValues(
        self, fc_as_hex: int, address: int, count: int = 1
    ) -> Union[List[int], ExcCodes]:
        read_fc = _ECHO_READS.get(fc_as_hex, fc_as_hex)
        try:
            response = self.adapter.handle(ModbusRequest(read_fc, address, count=count))
        except ModbusFault as fault:
            return fault.code
        return list(response.values)

    def setValues(
        self, fc_as_hex: int, address: int, values: Sequence[int]
    ) -> Optional[ExcCodes]:
        if fc_as_hex not in _ECHO_READS:
            return ExcCodes.ILLEGAL_FUNCTION

        values = tuple(int(v) for v in values)
        try:
            self.adapter.handle(
                ModbusRequest(fc_as_hex, address, count=len(values), values=values)
            )
        except ModbusFault as fault:
            return fault.code
        return None

    async def async_getValues(self, fc_as_hex: int, address: int, count: int = 1):
        return self.getValues(fc_as_hex, address, count)

    async def async_setValues(self, fc_as_hex: int, address: int, values):
        return self.setValues(fc_as_hex, address, values)


class ModbusSlave:
    """
    Modbus TCP slave serving a ``RegisterStore``.

    The server runs its own asyncio event loop on a daemon thread; the
    pymodbus server accepts any number of concurrent connections on it.
    """

    def __init__(
        self,
        store: RegisterStore,
        register_map: Optional[ModbusRegisterMap] = None,
        config: Optional[ModbusServerConfig] = None,
    ):
        """Initialize Modbus slave server."""

        self.store = store
        self.register_map = register_map or ModbusRegisterMap()
        self.config = config or ModbusServerConfig()
        self.config.validate()

        self.encoder = ModbusEncoder()
        self.decoder = ModbusDecoder()

        self.adapter = ModbusAccessAdapter(store)
        self.device_context = RegisterStoreContext(self.adapter)

        self.context = ModbusServerContext(
            devices={self.config.unit_id: self.device_context}, single=False
        )

        self.identity = ModbusDeviceIdentification()
        self.identity.VendorName = self.config.vendor_name
        self.identity.ProductCode = self.config.product_code
        self.identity.VendorUrl = self.config.vendor_url
        self.identity.ProductName = self.config.product_name
        self.identity.ModelName = self.config.model_name
        self.identity.MajorMinorRevision = self.config.version

        # Lifecycle management
        self.server_thread: Optional[threading.Thread] = None
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._startup_error: Optional[BaseException] = None

        # Synchronization
        self._running = threading.Event()
        self._server_ready = threading.Event()
        self._shutdown_requested = threading.Event()

        logger.info(
            f"Modbus slave initialized: {self.config.host}:{self.config.port}, "
            f"unit_id={self.config.unit_id}"
        )

    def write_holding_register(self, name: str, value: float):
        """Seed a float32 holding register locally (bypasses the network)."""
        reg = self.register_map.get_register_by_name(name)
        if not reg or reg.register_type != RegisterType.HOLDING_REGISTER:
            raise ValueError(f"Invalid holding register reference: {name}")

        high, low = self.encoder.float32_to_registers(value)
        self.store.write(RegisterFileKind.HOLDING, reg.address, [high, low])

    def read_holding_register(self, name: str) -> float:
        reg = self.register_map.get_register_by_name(name)
        if not reg or reg.register_type != RegisterType.HOLDING_REGISTER:
            raise ValueError(f"Invalid holding register reference: {name}")

        high, low = self.store.read(RegisterFileKind.HOLDING, reg.address, 2)
        return self.decoder.registers_to_float32(high, low)

    def read_input_register(self, name: str) -> float:
        """Decode a named input register from its current words."""
        reg = self.register_map.get_register_by_name(name)
        if not reg or reg.register_type != RegisterType.INPUT_REGISTER:
            raise ValueError(f"Invalid input register reference: {name}")

        high, low = self.store.read(RegisterFileKind.INPUT, reg.address, 2)
        if reg.data_type == "uint32":
            return self.decoder.registers_to_uint32(high, low)
        return self.decoder.registers_to_float32(high, low)

    def start(self, blocking: bool = True):
        """
        Start Modbus server.

        Args:
            blocking: If True, block until server stops
                     If False, run in background thread

        Raises:
            RuntimeError: If the server fails to come up in time
        """
        if self._running.is_set():
            logger.warning("Modbus server already running")
            return

        self._running.set()
        self._server_ready.clear()
        self._shutdown_requested.clear()
        self._startup_error = None

        if blocking:
            self._run_server()
            return

        self.server_thread = threading.Thread(
            target=self._run_server, daemon=True, name="ModbusTCPServer"
        )
        self.server_thread.start()

        if not self._server_ready.wait(timeout=self.config.startup_timeout_sec):
            self.stop()
            raise RuntimeError("Server startup timeout")

        if self._startup_error is not None:
            self._running.clear()
            raise RuntimeError(
                f"Server startup failed: {self._startup_error}"
            ) from self._startup_error

        logger.info(f"Modbus server started on {self.config.host}:{self.config.port}")

    def _run_server(self):
        """Own an event loop on this thread and run the server inside it."""
        loop = None
        try:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._event_loop = loop

            loop.run_until_complete(self._async_run_server())

        except Exception as e:
            logger.error(f"Modbus server error: {type(e).__name__}: {e}")
            self._startup_error = self._startup_error or e
            self._running.clear()

        finally:
            # Signal ready even on error (to unblock waiting threads)
            self._server_ready.set()

            if loop and not loop.is_closed():
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()

                with suppress(Exception):
                    loop.run_until_complete(
                        asyncio.gather(*pending, return_exceptions=True)
                    )

                loop.close()

            self._event_loop = None

    async def _async_run_server(self):
        """Run the pymodbus server until shutdown is requested."""
        server_task = asyncio.ensure_future(
            StartAsyncTcpServer(
                context=self.context,
                identity=self.identity,
                address=(self.config.host, self.config.port),
            )
        )
        try:
            while not self._shutdown_requested.is_set():
                await asyncio.sleep(0.1)
                if server_task.done():
                    # serve_forever only returns early on a bind/listen error
                    server_task.result()
                    raise RuntimeError("Modbus server exited unexpectedly")
                self._server_ready.set()

        except Exception as e:
            self._startup_error = e
            raise
        finally:
            if not server_task.done():
                with suppress(Exception):
                    await ServerAsyncStop()
                server_task.cancel()
                with suppress(asyncio.CancelledError, Exception):
                    await server_task

    def stop(self):
        """Stop Modbus server (graceful shutdown)."""
        if not self._running.is_set():
            return

        self._shutdown_requested.set()
        self._running.clear()

        if self.server_thread and self.server_thread.is_alive():
            self.server_thread.join(timeout=self.config.shutdown_timeout_sec)

            if self.server_thread.is_alive():
                logger.warning("Server thread did not terminate cleanly")

        logger.info("Modbus server stopped")

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running.is_set()
