"""Fixtures that stand in for the I2C bus and the INT pin of an APDS-9960."""
import errno

import pytest

from circuitpython_apds9960 import APDS9960, I2C_ADDRESS, DEVICE_ID


class FakeI2C:
    """An in-memory APDS-9960 register model speaking the ``busio.I2C`` API.

    A write transaction sets the register pointer with its first byte and stores
    any following bytes from there on. Reads start at the register pointer and
    auto-increment, like the real chip.
    """

    def __init__(self, address: int = I2C_ADDRESS, device_id: int = DEVICE_ID):
        self.address = address
        self.regs = bytearray(256)
        self.regs[0x92] = device_id
        self.pointer = 0
        self.writes = []  # (register, payload) per write transaction
        self.reads = []  # (register, byte count) per read transaction
        self.faults = set()  # registers whose access raises OSError
        self._locked = False

    def try_lock(self) -> bool:
        if self._locked:
            return False
        self._locked = True
        return True

    def unlock(self):
        self._locked = False

    def _check(self, address: int, reg: int):
        if address != self.address:
            raise OSError(errno.ENODEV, "No such device")
        if reg in self.faults:
            raise OSError(errno.EIO, "Input/output error")

    def writeto(self, address, buffer, *, start=0, end=None):
        data = bytes(buffer[start:end])
        if not data:  # address probe
            self._check(address, None)
            return
        reg = data[0]
        self._check(address, reg)
        self.pointer = reg
        if len(data) > 1:
            self.regs[reg : reg + len(data) - 1] = data[1:]
            self.writes.append((reg, data[1:]))

    def readfrom_into(self, address, buffer, *, start=0, end=None):
        end = len(buffer) if end is None else end
        self._check(address, self.pointer)
        buffer[start:end] = self.regs[self.pointer : self.pointer + end - start]
        self.reads.append((self.pointer, end - start))

    def written(self, reg: int):
        """All payloads written to ``reg`` in order."""
        return [payload for addr, payload in self.writes if addr == reg]

    def clear_log(self):
        self.writes.clear()
        self.reads.clear()


class FakePin:
    """Mimics the parts of ``digitalio.DigitalInOut`` used for the INT line."""

    def __init__(self):
        self.value = True
        self.pull = None
        self.is_input = False
        self.deinitialized = False

    def switch_to_input(self, pull=None):
        self.is_input = True
        self.pull = pull

    def deinit(self):
        self.deinitialized = True


@pytest.fixture
def bus():
    return FakeI2C()


@pytest.fixture
def sensor(bus):
    with APDS9960(bus) as dev:
        bus.clear_log()
        yield dev


@pytest.fixture
def pin():
    return FakePin()
