[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hotperf"
version = "0.1.0"
description = "Decode perf data stream event payloads into profiling summaries and prepare perf record invocations"
requires-python = ">=3.10"
dependencies = []
keywords = ["perf", "profiling", "performance", "linux", "off-cpu"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hotperf"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
