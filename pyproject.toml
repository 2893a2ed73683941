[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cncfeeder"
version = "0.1.0"
description = "Send and receive CNC programs over a serial port with hardware, software or GRBL flow control"
requires-python = ">=3.10"
keywords = ["cnc", "serial", "dnc", "gcode", "grbl", "rs232", "flow-control"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Manufacturing",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Terminals :: Serial",
]
dependencies = [
    "pyserial>=3.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
]

[project.scripts]
cncfeeder = "cncfeeder.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["cncfeeder"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
