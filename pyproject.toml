[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "modmqttgw"
version = "0.1.0"
description = "Building blocks of a Modbus to MQTT gateway: configuration, poll requests, scheduling, watchdog and value conversion"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["modbus", "mqtt", "gateway", "home-automation", "registers"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["modmqttgw"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
