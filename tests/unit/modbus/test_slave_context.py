# tests/unit/modbus/test_slave_context.py
"""Tests for the pymodbus binding.

The device context is called directly the way pymodbus calls it from its
request handlers, and through pymodbus' own request PDUs. No sockets are
opened.
"""

import asyncio

import pytest
from pymodbus.pdu import ExceptionResponse
from pymodbus.pdu.bit_message import ReadCoilsRequest, WriteSingleCoilRequest
from pymodbus.pdu.register_message import (
    ReadHoldingRegistersRequest,
    ReadInputRegistersRequest,
    WriteMultipleRegistersRequest,
    WriteSingleRegisterRequest,
)

from tank_simulator.modbus import (
    ExcCodes,
    ModbusAccessAdapter,
    ModbusServerConfig,
    ModbusSlave,
    RegisterFileKind,
    RegisterStoreContext,
)


@pytest.fixture
def context(store):
    return RegisterStoreContext(ModbusAccessAdapter(store))


def serve(request, context):
    """Run one pymodbus request PDU against the context, as the server does."""
    return asyncio.run(request.update_datastore(context))


# ================================================================
# DATASTORE CALLS
# ================================================================
class TestRegisterStoreContext:
    def test_get_input_registers(self, context, store):
        store.write(RegisterFileKind.INPUT, 2, [0x3F80, 0x0000])

        assert context.getValues(4, 2, 2) == [0x3F80, 0x0000]

    def test_get_holding_registers(self, context, store):
        store.write_holding_registers(6, [1, 2])

        assert context.getValues(3, 6, 2) == [1, 2]

    def test_out_of_range_returns_exception_code(self, context):
        result = context.getValues(3, 9, 2)

        assert isinstance(result, ExcCodes)
        assert result == ExcCodes.ILLEGAL_ADDRESS

    def test_coils_are_illegal_function(self, context):
        for result in (
            context.getValues(1, 0, 1),
            context.setValues(5, 0, [1]),
            context.setValues(15, 0, [1, 0]),
        ):
            assert isinstance(result, ExcCodes)
            assert result == ExcCodes.ILLEGAL_FUNCTION

    def test_input_registers_not_writable(self, context, store):
        result = context.setValues(4, 0, [1])

        assert isinstance(result, ExcCodes)
        assert result == ExcCodes.ILLEGAL_FUNCTION
        assert store.read_input_registers(0, 10) == [0] * 10

    def test_write_single_then_echo(self, context, store):
        """Test FC 06 as pymodbus drives it: set, then read back for the echo."""
        assert context.setValues(6, 4, [0xBEEF]) is None
        assert context.getValues(6, 4, 1) == [0xBEEF]
        assert store.read_holding_registers(4, 1) == [0xBEEF]

    def test_write_multiple(self, context, store):
        assert context.setValues(16, 2, [1, 2, 3, 4]) is None
        assert store.read_holding_registers(2, 4) == [1, 2, 3, 4]

    def test_write_out_of_range(self, context):
        result = context.setValues(16, 8, [1, 2, 3])

        assert isinstance(result, ExcCodes)
        assert result == ExcCodes.ILLEGAL_ADDRESS


# ================================================================
# PYMODBUS REQUEST HANDLING
# ================================================================
class TestRequestPdus:
    """Requests run through pymodbus' own ``update_datastore``.

    WHY: pymodbus decides between a data response and an exception
    response by the type of what the context returns, so the wire result
    can only be checked through its request classes.
    """

    def test_read_holding_registers(self, context, store):
        store.write_holding_registers(2, [0x3F80, 0x0000])

        response = serve(ReadHoldingRegistersRequest(address=2, count=2), context)

        assert not isinstance(response, ExceptionResponse)
        assert response.registers == [0x3F80, 0x0000]
        response.encode()

    def test_read_input_registers(self, context, store):
        store.write(RegisterFileKind.INPUT, 0, [1, 2, 3, 4, 5, 6])

        response = serve(ReadInputRegistersRequest(address=0, count=6), context)

        assert response.registers == [1, 2, 3, 4, 5, 6]

    @pytest.mark.parametrize(
        "request_class", [ReadHoldingRegistersRequest, ReadInputRegistersRequest]
    )
    def test_out_of_range_read_is_illegal_address(self, context, request_class):
        response = serve(request_class(address=9, count=2), context)

        assert isinstance(response, ExceptionResponse)
        assert response.function_code == request_class.function_code | 0x80
        assert response.exception_code == ExcCodes.ILLEGAL_ADDRESS

    def test_read_coils_is_illegal_function(self, context):
        response = serve(ReadCoilsRequest(address=0, count=1), context)

        assert isinstance(response, ExceptionResponse)
        assert response.function_code == 0x81
        assert response.exception_code == ExcCodes.ILLEGAL_FUNCTION

    def test_write_coil_is_illegal_function(self, context, store):
        response = serve(WriteSingleCoilRequest(address=0, bits=[True]), context)

        assert isinstance(response, ExceptionResponse)
        assert response.function_code == 0x85
        assert response.exception_code == ExcCodes.ILLEGAL_FUNCTION
        assert store.read_holding_registers(0, 10) == [0] * 10

    def test_write_single_register_echoes(self, context, store):
        response = serve(WriteSingleRegisterRequest(address=4, registers=[0xBEEF]), context)

        assert not isinstance(response, ExceptionResponse)
        assert response.registers == [0xBEEF]
        assert store.read_holding_registers(4, 1) == [0xBEEF]

    def test_write_single_register_out_of_range(self, context):
        response = serve(WriteSingleRegisterRequest(address=10, registers=[1]), context)

        assert isinstance(response, ExceptionResponse)
        assert response.exception_code == ExcCodes.ILLEGAL_ADDRESS

    def test_write_multiple_registers(self, context, store):
        response = serve(
            WriteMultipleRegistersRequest(address=2, registers=[1, 2, 3, 4]), context
        )

        assert not isinstance(response, ExceptionResponse)
        assert store.read_holding_registers(2, 4) == [1, 2, 3, 4]

    def test_write_multiple_registers_out_of_range(self, context, store):
        response = serve(
            WriteMultipleRegistersRequest(address=8, registers=[1, 2, 3]), context
        )

        assert isinstance(response, ExceptionResponse)
        assert response.function_code == 0x90
        assert response.exception_code == ExcCodes.ILLEGAL_ADDRESS
        assert store.read_holding_registers(0, 10) == [0] * 10


# ================================================================
# SLAVE HELPERS
# ================================================================
class TestModbusSlave:
    def test_seeds_holding_register(self, store):
        slave = ModbusSlave(store)

        slave.write_holding_register("inflow_b", 1.0)

        assert store.read_holding_registers(4, 2) == [0x3F80, 0x0000]
        assert slave.read_holding_register("inflow_b") == 1.0

    def test_reads_input_registers(self, store):
        slave = ModbusSlave(store)
        store.write(RegisterFileKind.INPUT, 0, [0x0001, 0x0002, 0x40E8, 0x0000])

        assert slave.read_input_register("unix_time") == 0x00010002
        assert slave.read_input_register("tank_level") == 7.25

    def test_rejects_wrong_register_type(self, store):
        slave = ModbusSlave(store)

        with pytest.raises(ValueError):
            slave.write_holding_register("tank_level", 1.0)
        with pytest.raises(ValueError):
            slave.read_input_register("inflow_a")

    def test_not_running_until_started(self, store):
        slave = ModbusSlave(store)

        assert not slave.is_running
        slave.stop()

    @pytest.mark.parametrize("kwargs", [{"port": 0}, {"port": 70000}, {"unit_id": 300}])
    def test_invalid_server_config(self, kwargs):
        with pytest.raises(ValueError):
            ModbusServerConfig(**kwargs).validate()

    def test_default_server_config(self):
        config = ModbusServerConfig()

        assert (config.host, config.port, config.unit_id) == ("0.0.0.0", 1502, 1)
