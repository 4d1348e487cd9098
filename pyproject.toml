[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "canutil"
version = "0.1.0"
description = "CAN frame notation, ASC log conversion, SAE J1939 and SLCAN command-line tools"
requires-python = ">=3.10"
dependencies = []
keywords = ["can", "canbus", "socketcan", "j1939", "slcan", "canfd", "automotive"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN) :: J1939",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
log2asc = "canutil.log2asc:main"
jcat = "canutil.jcat:main"
jsr = "canutil.jsr:main"
testj1939 = "canutil.testj1939:main"
slcanpty = "canutil.slcan:main"
slcan_attach = "canutil.slcan_attach:main"

[tool.hatch.build.targets.wheel]
packages = ["canutil"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
