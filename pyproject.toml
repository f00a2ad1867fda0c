[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "procview"
version = "0.1.0"
description = "Building blocks for ps-like process tables: TOML configuration, keyword search, tree filtering and themed terminal output"
requires-python = ">=3.11"
dependencies = [
    "tomli-w",
    "wcwidth",
]
keywords = ["ps", "process", "table", "terminal", "search", "tree", "ansi"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["procview"]

[tool.pytest.ini_options]
addopts = "-ra"
