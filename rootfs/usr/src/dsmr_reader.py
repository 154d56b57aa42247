import logging
import signal
import sys
import threading

import config as config_module
from report import ErrorReporter
from supervisor import Supervisor
from utils import get_version

"""
Description
-----------
This small Python application reads the P1 port of a Dutch or Belgian (DSMR) smart meter and
republishes every measurement as its own MQTT message, so your favorite home automation can
pick up energy, power, voltage, current and gas readings.

It is meant to run forever. Whenever the serial port or the MQTT broker fails, both
connections are torn down, the error is logged (and published on the error topic once the
broker is back), and after a short pause everything is set up again.

P1
--
Every second (DSMR 5) or ten seconds (DSMR 4) the meter sends a telegram:

/ISk5\\2MT382-1000

1-0:1.8.1(123456.789*kWh)
1-0:1.7.0(01.193*kW)
1-0:32.7.0(220.1*V)
0-1:24.2.1(101209112500W)(12785.123*m3)
!EF2F

Default serialport configuration (DSMR 4 and 5):
Speed: 115200 baud
Parity: None
Databits: 8
Stopbit: 1

MQTT
----
base_topic/status - online/offline
base_topic/error - last error, or 'No Error'
base_topic/energy_delivered_tariff1
base_topic/power_delivered
base_topic/voltage_l1
base_topic/gas_delivered
...

Configuration
-------------
Environment variables: MQTT_HOST, MQTT_PORT, MQTT_TOPIC, MQTT_QOS, MQTT_RETAIN, MQTT_CLIENT_ID,
MQTT_KEEPALIVE, MQTT_USERNAME, MQTT_PASSWORD, MQTT_PROTOCOL, MQTT_STATUS, SERIAL_PORT,
SERIAL_BAUDRATE, SERIAL_PARITY, SERIAL_BYTESIZE, RETRY_DELAY, LOG_LEVEL.
"""

logger = logging.getLogger(__name__)

stopper = threading.Event()


def main():
    # Signal handling for graceful shutdown
    def signal_handler(signum, frame):
        logger.info(f"Signal {signum} received, stopping...")
        stopper.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        config = config_module.read_config(version=get_version())
    except Exception:
        logger.error("Fatal exception during startup", exc_info=True)
        sys.exit(1)

    logger.info("Starting dsmr-reader...")

    supervisor = Supervisor(config, ErrorReporter(), stopper=stopper)
    supervisor.run_forever()

    logger.info("Stop: dsmr-reader")


if __name__ == "__main__":
    main()
