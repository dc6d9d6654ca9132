"""
A driver module for the ambient light sensing (ALS) features of the Broadcom
APDS-9960 proximity, ambient light, RGB and gesture sensor.
"""
__version__ = "0.0.0-auto.0"
__repo__ = "https://github.com/2bndy5/CircuitPython_APDS9960.git"
import copy
import logging
import struct

try:
    from typing import Optional, Callable, Dict
except ImportError:
    pass

from micropython import const
from adafruit_bus_device.i2c_device import I2CDevice

_LOG = logging.getLogger(__name__)

I2C_ADDRESS: int = const(0x39)  #: The fixed 7-bit I2C address of the APDS-9960.
I2C_FREQUENCY: int = const(400000)  #: The recommended I2C bus clock in Hz.
DEVICE_ID: int = const(0xAB)  #: The value reported by the ID register.
#: The valid values of :attr:`Configuration.als_gain`.
ALS_GAINS = (1, 4, 16, 64)
#: The valid values of :attr:`Configuration.proximity_gain`.
PROXIMITY_GAINS = (1, 2, 4, 8)
#: The valid values of :attr:`Configuration.als_threshold_persistence`. The index of a
#: value is its encoding in the APERS field of the PERS register.
ALS_PERSISTENCE_CYCLES = (0, 1, 2, 3, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55, 60)

#  Defined constants for APDS-9960 registers
_ENABLE: int = const(0x80)
_ATIME: int = const(0x81)
# _WTIME: int = const(0x83)  # wait time is left at its reset value
_AILTL: int = const(0x84)
_AIHTL: int = const(0x86)
_PERS: int = const(0x8C)
_CONTROL_ONE: int = const(0x8F)
_ID: int = const(0x92)
_STATUS: int = const(0x93)
_CDATAL: int = const(0x94)
_AICLEAR: int = const(0xE7)  # any read clears latched interrupts

_STATUS_AVALID: int = const(0x01)
_COUNTS_PER_CYCLE: int = const(1025)


class EnableFlags:
    """The bits of the APDS-9960's ENABLE register.

    Each attribute is a `bool` named after the datasheet's bit name.
    """

    #: ENABLE register bit position for each flag
    BITS = (
        ("GEN", 6),
        ("PIEN", 5),
        ("AIEN", 4),
        ("WEN", 3),
        ("PEN", 2),
        ("AEN", 1),
        ("PON", 0),
    )

    def __init__(self):
        self.GEN: bool = False  #: gesture enable
        self.PIEN: bool = False  #: proximity interrupt enable
        self.AIEN: bool = False  #: ALS interrupt enable
        self.WEN: bool = False  #: wait enable
        self.PEN: bool = False  #: proximity detect enable
        self.AEN: bool = False  #: ALS enable
        self.PON: bool = False  #: power on

    @property
    def value(self) -> int:
        """The complete ENABLE register byte for the current flags."""
        result = 0
        for name, bit in self.BITS:
            result |= bool(getattr(self, name)) << bit
        return result

    def __repr__(self) -> str:
        return "<EnableFlags {}>".format(
            " ".join(name for name, _ in self.BITS if getattr(self, name)) or "none"
        )


class Configuration:
    """The driver's record of the APDS-9960 configuration.

    The chip's configuration registers are never read back, so this record is the
    only source of what was written to them. Use `APDS9960.configure()` to change it.
    """

    def __init__(self):
        self.enabled = EnableFlags()  #: The flags of the ENABLE register.
        #: The number of 2.78 ms ALS integration cycles ranging [1, 256].
        self.als_integration_cycles: int = 1
        self.als_gain: int = 1  #: The ALS gain multiplier, one of `ALS_GAINS`.
        #: The proximity gain multiplier, one of `PROXIMITY_GAINS`.
        self.proximity_gain: int = 1
        self.als_threshold_low: int = 0  #: The clear channel's low interrupt threshold.
        self.als_threshold_high: int = 0xFFFF  #: The clear channel's high threshold.
        #: Consecutive out-of-threshold ALS cycles before an interrupt is latched.
        self.als_threshold_persistence: int = 0
        #: Consecutive out-of-threshold proximity cycles ranging [0, 15].
        self.proximity_threshold_persistence: int = 0

    def __repr__(self) -> str:
        return (
            "<Configuration {} cycles: {} gain: {}/{} thresholds: {:#06x}-{:#06x} "
            "persistence: {}/{}>".format(
                self.enabled,
                self.als_integration_cycles,
                self.als_gain,
                self.proximity_gain,
                self.als_threshold_low,
                self.als_threshold_high,
                self.als_threshold_persistence,
                self.proximity_threshold_persistence,
            )
        )


class LightMeter:
    """The ALS channels of a `Sample`.

    Each channel is a fraction of `APDS9960.max_sample_count`: ``0.0`` is darkness and
    ``1.0`` is saturation at the current integration time. The APDS-9960 datasheet
    offers no formula to convert these counts into lux.
    """

    def __init__(
        self, clear: float = 0.0, red: float = 0.0, green: float = 0.0, blue: float = 0.0
    ):
        self.clear: float = clear  #: The clear (unfiltered) channel.
        self.red: float = red  #: The red channel.
        self.green: float = green  #: The green channel.
        self.blue: float = blue  #: The blue channel.

    def __repr__(self) -> str:
        return "<LightMeter C: {:.4f} R: {:.4f} G: {:.4f} B: {:.4f}>".format(
            self.clear, self.red, self.green, self.blue
        )


class Sample:
    """A class to represent data returned by `APDS9960.sample()`.

    :param lightmeter: The initial value of the `lightmeter` attribute.
    """

    def __init__(self, lightmeter: Optional[LightMeter] = None):
        self.lightmeter: Optional[LightMeter] = lightmeter
        """The ALS readings. This is `None` if ALS is disabled or the chip has not
        finished a new integration cycle since the last sample."""

    def __repr__(self) -> str:
        return "<Sample {}>".format(self.lightmeter)


def als_persistence_code(cycles: int) -> int:
    """Encode a number of ALS persistence cycles into the PERS register's APERS field.

    :param cycles: ``0`` to ``3`` are encoded as themselves. Multiples of 5 up to
        ``60`` are encoded as ``cycles / 5 + 3``.
    :raises ValueError: for any other value.
    """
    if cycles not in ALS_PERSISTENCE_CYCLES:
        raise ValueError(
            "invalid als_threshold_persistence {}; use one of {}".format(
                cycles, ALS_PERSISTENCE_CYCLES
            )
        )
    return ALS_PERSISTENCE_CYCLES.index(cycles)


def _check_int(name: str, value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("{} must be an int, not {}".format(name, type(value).__name__))


class _AlertInput:
    """Watches the pin connected to the APDS-9960's active-low INT line."""

    def __init__(self, pin, handler: Callable[[], None]):
        from digitalio import Pull  # pylint: disable=import-outside-toplevel

        self.pin = pin
        self.pin.switch_to_input(pull=Pull.UP)
        self._handler = handler
        self._level = bool(self.pin.value)

    def poll(self) -> bool:
        level = bool(self.pin.value)
        falling = self._level and not level
        self._level = level
        if falling:
            self._handler()
        return falling

    def deinit(self):
        self.pin.deinit()


class APDS9960:
    """A driver class for the ambient light sensing of the APDS-9960 via I2C.

    The chip is reset and identified upon instantiation, then configured with::

        on=True, enable_als=True, als_integration_cycles=10, als_gain=1,
        als_threshold_low=0, als_threshold_high=0xFFFF,
        als_threshold_persistence=1, proximity_threshold_persistence=1

    :param i2c: The object of the I2C bus to use. This object must be shared among other
        driver classes that use the same I2C bus (SDA & SCL pins). The APDS-9960 supports
        a bus clock up to `I2C_FREQUENCY`.
    :param address: The I2C address of the APDS-9960. Defaults to `I2C_ADDRESS`.
    :param alert_pin: The `~digitalio.DigitalInOut` connected to the APDS-9960's INT pin.
        The driver switches it to an input with a pull-up resistor and deinitializes it
        upon `close()`.
    :param on_alert: A function (taking no arguments) called for each falling edge on
        the ``alert_pin`` found by `poll_alert()`.

    .. note:: The ``alert_pin`` is only used if ``on_alert`` is also specified.

    :raises RuntimeError: if the chip could not be reset or identified. All resources
        are released before this is raised.
    :raises OSError: if the I2C bus reports a fault while applying the default
        configuration. All resources are released before this is raised.
    """

    def __init__(
        self,
        i2c,
        address: int = I2C_ADDRESS,
        alert_pin=None,
        on_alert: Optional[Callable[[], None]] = None,
    ):
        self._i2c: Optional[I2CDevice] = I2CDevice(i2c, address)
        self._alert: Optional[_AlertInput] = None
        self._buf = bytearray(3)
        self._configuration = Configuration()
        self._max_count = _COUNTS_PER_CYCLE

        try:  # reset
            self._write_u8(_ENABLE, 0x00)
            self._write_u8(_ENABLE, 0x01)
        except OSError as exc:
            self._release()
            raise RuntimeError("APDS-9960 reset failed") from exc
        try:
            device_id = self._read_u8(_ID)
        except OSError as exc:
            self._release()
            raise RuntimeError("I2C error during APDS-9960 ID check") from exc
        if device_id != DEVICE_ID:
            self._release()
            raise RuntimeError("unexpected sensor ID {:#04x}".format(device_id))
        _LOG.debug("found APDS-9960 at address %#04x", address)

        if alert_pin is not None and on_alert is not None:
            self._on_alert = on_alert
            self._alert = _AlertInput(alert_pin, self._handle_alert)

        try:
            self.configure(
                on=True,
                enable_als=True,
                als_integration_cycles=10,
                als_gain=1,
                als_threshold_low=0,
                als_threshold_high=0xFFFF,
                als_threshold_persistence=1,
                proximity_threshold_persistence=1,
            )
        except OSError:
            self._release()
            raise

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def configure(
        self,
        on: Optional[bool] = None,
        enable_als: Optional[bool] = None,
        als_integration_cycles: Optional[int] = None,
        als_gain: Optional[int] = None,
        proximity_gain: Optional[int] = None,
        als_threshold_low: Optional[int] = None,
        als_threshold_high: Optional[int] = None,
        als_threshold_persistence: Optional[int] = None,
        proximity_threshold_persistence: Optional[int] = None,
    ):
        """Change the chip's configuration.

        Only the specified parameters are changed; a parameter left as `None` keeps
        its current value and causes no I2C transaction.

        :param on: Power on (`True`) or put the chip in low power mode (`False`).
        :param enable_als: Enable (`True`) or disable (`False`) the ALS engine.
        :param als_integration_cycles: The number of integration cycles (2.78 ms each)
            for one ALS reading, ranging [1, 256]. This also sets `max_sample_count`.
        :param als_gain: The ALS gain. Valid values are in `ALS_GAINS`.
        :param proximity_gain: The proximity gain. Valid values are in `PROXIMITY_GAINS`.
        :param als_threshold_low: The clear channel count below which an ALS interrupt
            is raised, ranging [0, 0xFFFF].
        :param als_threshold_high: The clear channel count above which an ALS interrupt
            is raised, ranging [0, 0xFFFF].
        :param als_threshold_persistence: The number of consecutive out-of-threshold ALS
            cycles needed to raise an interrupt. Valid values are in
            `ALS_PERSISTENCE_CYCLES`.
        :param proximity_threshold_persistence: The number of consecutive
            out-of-threshold proximity cycles needed to raise an interrupt, ranging
            [0, 15].

        The ALS interrupt is enabled unless the thresholds are ``0`` and ``0xFFFF``.
        Changing either threshold also clears any pending interrupt.

        :raises ValueError: if a value is out of range. Parameters processed before the
            offending one remain applied.
        :raises OSError: if the I2C bus reports a fault. Nothing is rolled back.
        :raises RuntimeError: if the driver was closed.

        The ENABLE register is rewritten whenever ``on``, ``enable_als`` or a threshold
        was accepted, even if a later parameter raises an exception.
        """
        if self._i2c is None:
            raise RuntimeError("APDS-9960 is closed")
        config = self._configuration
        if enable_als is not None:
            config.enabled.AEN = bool(enable_als)
        if on is not None:
            config.enabled.PON = bool(on)
        enable_changed = on is not None or enable_als is not None
        thresholds_changed = False
        try:
            if als_gain is not None or proximity_gain is not None:
                # both gains share one register, so validate both before writing either
                if als_gain is not None:
                    _check_int("als_gain", als_gain)
                    if als_gain not in ALS_GAINS:
                        raise ValueError(
                            "invalid als_gain; use one of {}".format(ALS_GAINS)
                        )
                if proximity_gain is not None:
                    _check_int("proximity_gain", proximity_gain)
                    if proximity_gain not in PROXIMITY_GAINS:
                        raise ValueError(
                            "invalid proximity_gain; use one of {}".format(
                                PROXIMITY_GAINS
                            )
                        )
                if als_gain is not None:
                    config.als_gain = als_gain
                if proximity_gain is not None:
                    config.proximity_gain = proximity_gain
                control = ALS_GAINS.index(config.als_gain)
                control |= PROXIMITY_GAINS.index(config.proximity_gain) << 2
                self._write_u8(_CONTROL_ONE, control)

            if als_integration_cycles is not None:
                _check_int("als_integration_cycles", als_integration_cycles)
                if not 1 <= als_integration_cycles <= 256:
                    raise ValueError("als_integration_cycles is out of bounds [1, 256]")
                config.als_integration_cycles = als_integration_cycles
                self._max_count = _COUNTS_PER_CYCLE * als_integration_cycles
                self._write_u8(_ATIME, 256 - als_integration_cycles)

            # alert thresholds, both validated before either is stored
            if als_threshold_low is not None:
                _check_int("als_threshold_low", als_threshold_low)
                if not 0 <= als_threshold_low <= 0xFFFF:
                    raise ValueError("als_threshold_low is out of bounds [0, 0xFFFF]")
            if als_threshold_high is not None:
                _check_int("als_threshold_high", als_threshold_high)
                if not 0 <= als_threshold_high <= 0xFFFF:
                    raise ValueError("als_threshold_high is out of bounds [0, 0xFFFF]")
            if als_threshold_low is not None:
                config.als_threshold_low = als_threshold_low
                thresholds_changed = True
                self._write_u16(_AILTL, als_threshold_low)
            if als_threshold_high is not None:
                config.als_threshold_high = als_threshold_high
                thresholds_changed = True
                self._write_u16(_AIHTL, als_threshold_high)

            if als_threshold_persistence is not None or (
                proximity_threshold_persistence is not None
            ):
                if als_threshold_persistence is None:
                    als_threshold_persistence = config.als_threshold_persistence
                _check_int("als_threshold_persistence", als_threshold_persistence)
                apers = als_persistence_code(als_threshold_persistence)
                if proximity_threshold_persistence is None:
                    proximity_threshold_persistence = (
                        config.proximity_threshold_persistence
                    )
                _check_int(
                    "proximity_threshold_persistence", proximity_threshold_persistence
                )
                if not 0 <= proximity_threshold_persistence <= 15:
                    raise ValueError(
                        "proximity_threshold_persistence is out of bounds [0, 15]"
                    )
                config.als_threshold_persistence = als_threshold_persistence
                config.proximity_threshold_persistence = proximity_threshold_persistence
                self._write_u8(_PERS, (proximity_threshold_persistence << 4) | apers)
        finally:
            # the ENABLE register must match the flags accepted so far
            if thresholds_changed:
                config.enabled.AIEN = not (
                    config.als_threshold_low == 0
                    and config.als_threshold_high == 0xFFFF
                )
                self._read_u8(_AICLEAR)  # don't let a stale interrupt fire again
            if enable_changed or thresholds_changed:
                self._write_u8(_ENABLE, config.enabled.value)

    def sample(self) -> Optional[Sample]:
        """Read the latest measurements.

        :Returns:
            - `None` if the chip is not powered on (see the ``on`` parameter to
              `configure()`). No I2C transaction is made in this case.
            - A `Sample` otherwise. Its `Sample.lightmeter` attribute is `None` unless
              ALS is enabled and the STATUS register reports a completed ALS cycle.
        """
        enabled = self._configuration.enabled
        if not enabled.PON:
            return None
        result = Sample()
        status = self._read_u8(_STATUS)
        if enabled.AEN and status & _STATUS_AVALID:
            channels = struct.unpack("<4H", self._read_bytes(_CDATAL, 8))
            _LOG.debug("clear: %d", channels[0])
            result.lightmeter = LightMeter(*[c / self._max_count for c in channels])
        return result

    def poll_alert(self) -> bool:
        """Check the ``alert_pin`` for a falling edge and handle it.

        Call this from the application's main loop. Upon a falling edge, the chip's
        latched interrupt is cleared and then the ``on_alert`` function is called.
        Edges that happen between calls to this function are merged into one.

        :Returns: `True` if an alert was handled, otherwise `False` (also when no
            ``alert_pin`` and ``on_alert`` were given upon instantiation).
        """
        if self._alert is None:
            return False
        return self._alert.poll()

    def _handle_alert(self):
        _LOG.debug("alert")
        self._read_u8(_AICLEAR)  # have to do a fake read to clear the interrupt
        self._on_alert()

    def close(self):
        """Disable the chip and release the I2C device and the ``alert_pin``.

        Calling this more than once is harmless. If the I2C bus reports a fault while
        disabling the chip, the resources are still released before the `OSError` is
        raised.
        """
        if self._i2c is None and self._alert is None:
            return
        try:
            if self._i2c is not None:
                self._write_u8(_ENABLE, 0x00)
        finally:
            self._release()

    def _release(self):
        self._i2c = None
        self._configuration.enabled = EnableFlags()
        if self._alert is not None:
            self._alert.deinit()
        self._alert = None

    @property
    def configuration(self) -> Configuration:
        """A copy of the current `Configuration`. Changing the copy does not change
        the driver; use `configure()` instead."""
        return copy.deepcopy(self._configuration)

    @property
    def max_sample_count(self) -> int:
        """The raw count of a saturated channel at the current integration time
        (``1025 * als_integration_cycles``)."""
        return self._max_count

    @property
    def identification(self) -> Dict[str, str]:
        """Static information that describes the sensor."""
        return {
            "model": "Broadcom APDS-9960",
            "classification": "AmbientLight-Gesture-Proximity",
        }

    def _read_u8(self, reg: int) -> int:
        return self._read_bytes(reg, 1)[0]

    def _read_bytes(self, reg: int, numb_bytes: int) -> bytearray:
        buf = bytearray(numb_bytes)
        with self._i2c as i2c:
            i2c.write(bytes([reg]))
            # auto-increments register for each byte read
            i2c.readinto(buf)
        return buf

    def _write_u8(self, reg: int, value: int):
        _LOG.debug("write %#04x = %#04x", reg, value)
        self._buf[0] = reg
        self._buf[1] = value & 0xFF
        with self._i2c as i2c:
            i2c.write(self._buf, end=2)

    def _write_u16(self, reg: int, value: int):
        _LOG.debug("write %#04x = %#06x", reg, value)
        struct.pack_into("<BH", self._buf, 0, reg, value)
        with self._i2c as i2c:
            i2c.write(self._buf, end=3)
