[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "yesense"
version = "0.1.0"
description = "Serial stream decoder, command builder and driver for Yesense inertial measurement units"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = ["imu", "ahrs", "gnss", "nmea", "serial", "yesense", "protocol"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Topic :: Terminals :: Serial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
yesense = "yesense.driver:main"

[tool.hatch.build.targets.wheel]
packages = ["yesense"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
