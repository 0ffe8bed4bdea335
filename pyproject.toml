[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "duputil"
version = "1.0.0"
description = "Scheduler-friendly wrapper that runs duplicacy backup, copy, prune and check operations with logging, log rotation and pluggable notifications"
requires-python = ">=3.10"
keywords = ["duplicacy", "backup", "prune", "scheduler", "log rotation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
]
dependencies = [
    "pyyaml",
    "filelock",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
duputil = "duputil.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["duputil"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
