[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "yab"
version = "0.1.0"
description = "Building blocks for a command-line RPC benchmarker: option parsing, request input, protobuf descriptors and statsd reporting"
requires-python = ">=3.11"
keywords = ["benchmark", "rpc", "statsd", "grpc", "thrift", "protobuf", "command-line"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml>=6.0",
    "protobuf>=4.21",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[project.scripts]
yab-changelog = "yab.changelog:main"

[tool.hatch.build.targets.wheel]
packages = ["yab"]

[tool.hatch.build.targets.sdist]
include = ["yab", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
