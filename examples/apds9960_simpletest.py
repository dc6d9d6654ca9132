"""
A simple test example that prints the light meter readings.
"""
import time
import board
import busio

from circuitpython_apds9960 import APDS9960, I2C_FREQUENCY

i2c = busio.I2C(board.SCL, board.SDA, frequency=I2C_FREQUENCY)
sensor = APDS9960(i2c)
sensor.configure(als_gain=4, als_integration_cycles=40)


def print_data(timeout=6):
    """Print the ALS readings from the APDS-9960 for a period of ``timeout``
    seconds."""
    start = time.monotonic()
    while time.monotonic() - start < timeout:
        result = sensor.sample()
        if result is None:
            print("sensor is powered down")
            return
        if result.lightmeter is not None:  # is there new data?
            print(result.lightmeter)
        time.sleep(0.1)


print(sensor.identification["model"], sensor.configuration)
print_data()
