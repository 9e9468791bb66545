# modmqttgw

Building blocks for a gateway that polls Modbus devices and publishes their
register values over MQTT: configuration reading, poll request bookkeeping,
scheduling, a reconnect watchdog and value converters.

## Installation

```
pip install modmqttgw
```

The only runtime dependency is PyYAML.

## Modules

- `modmqttgw.modbus_types`: `RegisterType` (`COIL`, `BIT`, `HOLDING`,
  `INPUT`), `ModbusAddressRange` and `ModbusSlaveAddressRange`. Ranges have
  `first_register` / `last_register` and can be merged (`merge`), tested for
  overlap (`overlaps`), adjacency (`is_consecutive_of`) and equality
  (`is_same_as`). `ModMqttError` is the base class of all errors the package
  raises.
- `modmqttgw.modbus_messages`: messages passed between the MQTT side and the
  Modbus side: `MsgRegisterValues`, `MsgRegisterReadFailed`,
  `MsgRegisterWriteFailed`, `MsgRegisterPoll`, `MsgModbusNetworkState`,
  `MsgMqttNetworkState` and `EndWorkMessage`. `MsgRegisterPollSpecification`
  joins consecutive registers of the same slave and type (`group`) and merges
  overlapping ranges into one, keeping the shortest refresh period (`merge`,
  `merge_all`).
- `modmqttgw.config`: `load_yaml` parses YAML text (mappings remember their
  line numbers, scalars stay strings); `parse_duration` reads values such as
  `500ms`, `10s`, `5min`, `1h`. `ModbusNetworkConfig.from_yaml` reads an RTU
  (`device`, `baud`, `parity`, `data_bit`, `stop_bit`, …) or TCP/IP
  (`address`, `port`) network, with response timeouts limited to 0–999ms,
  command delays, retry counts and watchdog period.
  `MqttBrokerConfig.from_yaml` reads host, port, keepalive, credentials and TLS
  settings; `is_same_as` compares two of them. Problems raise
  `ConfigurationError`, whose message includes the line number when it is
  known.
- `modmqttgw.modbus_slave`: `ModbusSlaveConfig.from_yaml(address, data)` reads
  per-slave name, delays and retry counts. The older keys `delay_before_poll`
  and `delay_before_first_poll` are accepted with a deprecation warning.
- `modmqttgw.conv_name_parser`: `parse_converter_spec` splits specs of the
  form `plugin.converter(arg1, "arg 2", 'arg3')` into a
  `ConverterSpecification`; `parse_args` handles quoting and backslash
  escapes. Malformed specs raise `ConverterNameParserError`.
- `modmqttgw.default_command_converter`: `DefaultCommandConverter.to_modbus`
  turns an MQTT payload into register values: a single integer (decimal, hex
  `0x..` or octal `0..`) in range 0–65535, or, for several registers, a JSON
  array of exactly that many values (`parse_as_json`). Failures raise
  `ConversionError`.
- `modmqttgw.modbus_scheduler`: `ModbusScheduler.get_registers_to_poll`
  returns the registers due at a given monotonic time, grouped by slave, and
  the time to wait until the next one is due; `find_register_poll` finds the
  poll that overlaps received values.
- `modmqttgw.modbus_watchdog`: `ModbusWatchdog` tracks the time since the last
  successful command and, for serial networks, whether the device file still
  exists; `is_reconnect_required` tells when the network should reconnect.
- `modmqttgw.exprconv`: `ExprPlugin` (named `expr`) provides the `evaluate`
  converter, an `ExpressionConverter` that evaluates arithmetic over registers
  `R0`…`R9` with the helpers `int16`, `int32`, `uint32`, `flt32` and
  `flt32be`, common math functions and an optional number of decimal places.
- `modmqttgw.logsetup`: `Severity`, `init_logging(level, stream)` and
  `timestamps_wanted`, which leaves out timestamps when stderr is the systemd
  journal.

## Examples

Parse a converter spec:

```python
from modmqttgw.conv_name_parser import parse_converter_spec

spec = parse_converter_spec('std.divide(10, "x")')
print(spec.plugin, spec.converter, spec.args)   # std divide ['10', 'x']
```

Evaluate an expression over register values:

```python
from modmqttgw.exprconv import ExprPlugin

conv = ExprPlugin().get_converter("evaluate")
conv.set_args(["R0 / 3", "3"])
print(conv.to_mqtt([10]))   # 3.333

conv.set_args(["int32(R0, R1)"])
print(conv.to_mqtt([0xDCFE, 0x98BA]))   # -19088744
```

Read a network configuration:

```python
from modmqttgw.config import ModbusNetworkConfig, load_yaml

node = load_yaml("""
name: tcptest
address: localhost
port: 501
response_timeout: 200ms
""")
cfg = ModbusNetworkConfig.from_yaml(node)
print(cfg.network_type, cfg.address, cfg.port, cfg.response_timeout)
```

Convert a command payload:

```python
from modmqttgw.default_command_converter import DefaultCommandConverter

conv = DefaultCommandConverter()
print(conv.to_modbus("0x10", 1))      # [16]
print(conv.to_modbus("[1, 2]", 2))    # [1, 2]
```

## What this package does not do

It does not talk to Modbus devices or to an MQTT broker: there is no Modbus
connection, no worker that executes the scheduled polls and writes, no MQTT
client and no command-line program. It supplies the configuration, message,
scheduling, watchdog and conversion pieces such a gateway is built from.

## Running the tests

From a source checkout, install the `test` extra and run `pytest`.