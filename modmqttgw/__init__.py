"""Building blocks of a Modbus to MQTT gateway: configuration, poll requests, scheduling, watchdog and converters."""

__version__ = "0.1.0"