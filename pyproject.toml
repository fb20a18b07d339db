[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "peinspect"
version = "0.1.0"
description = "Read Portable Executable DOS headers, bound imports and .NET metadata, and report header anomalies"
requires-python = ">=3.10"
dependencies = []
keywords = ["pe", "portable-executable", "windows", "binary", "clr", "dotnet", "malware-analysis"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Information Technology",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Disassemblers",
    "Topic :: Security",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["peinspect"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
