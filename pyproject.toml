[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zkbintools"
version = "1.0.0"
description = "Inspect and dump ZK binary files, and read and write typed XML trees"
requires-python = ">=3.10"
dependencies = []
keywords = ["binary", "dump", "relocations", "checksum", "xml", "build-tools"]
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
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[project.scripts]
bindmp = "zkbintools.bindmp:main"

[tool.hatch.build.targets.wheel]
packages = ["zkbintools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
