[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "statcounters"
version = "0.1.0"
description = "In-process service counters: callback-backed counter maps, regex key lookup, LRU maps, timeseries export and quantile stat maps."
requires-python = ">=3.10"
dependencies = []
keywords = ["counters", "stats", "monitoring", "metrics", "quantiles", "timeseries", "lru"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
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
packages = ["statcounters"]

[tool.pytest.ini_options]
addopts = "-ra"
