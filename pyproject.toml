[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "canlink"
version = "0.1.0"
description = "CAN bus frames, filters, TRC trace files, periodic senders and SocketCAN access"
requires-python = ">=3.10"
dependencies = []
keywords = ["can", "socketcan", "trc", "canbus", "automotive"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["canlink"]

[tool.pytest.ini_options]
addopts = "-ra"
