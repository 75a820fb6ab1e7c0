[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "exeparse"
version = "0.1.0"
description = "Byte buffers, address conversion and field views for executable images, with an interactive inspection shell for MZ (DOS) executables"
requires-python = ">=3.10"
dependencies = []
keywords = ["executable", "mz", "dos", "parser", "binary", "hexdump"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Disassemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
exeparse = "exeparse.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["exeparse"]

[tool.pytest.ini_options]
addopts = "-ra"
