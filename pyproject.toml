[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rv32sim"
version = "0.1.0"
description = "A RISC-V RV32IM instruction-set simulator with a built-in debugger"
requires-python = ">=3.10"
dependencies = []
keywords = ["risc-v", "rv32im", "simulator", "emulator", "debugger", "elf", "disassembler"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rv32sim = "rv32sim.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["rv32sim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
