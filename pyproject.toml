[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "btccanister"
version = "0.1.0"
description = "Bitcoin block types, block tree, header store, fee percentiles, Prometheus metrics encoding and chunked upload verification"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "bitcoin",
    "blockchain",
    "block-tree",
    "fee-percentiles",
    "prometheus",
    "metrics",
    "sha256",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[project.scripts]
btccanister-compute-hashes = "btccanister.uploader:main"

[tool.hatch.build.targets.wheel]
packages = ["btccanister"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
