[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nodemetrics"
version = "0.1.0"
description = "Collectors that read Linux /proc and /sys and expose host metrics in the Prometheus text format."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "metrics",
    "monitoring",
    "prometheus",
    "procfs",
    "sysfs",
    "linux",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nodemetrics"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
