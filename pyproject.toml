[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kvslab"
version = "0.1.0"
description = "Slab-based key-value storage components: page cache, batched page IO engine, slab files, red-black tree and workload key generators"
requires-python = ">=3.10"
keywords = ["key-value", "storage", "slab", "page-cache", "red-black-tree", "zipf", "benchmark"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: System :: Benchmark",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kvslab-parse-log = "kvslab.logparse:main"
kvslab-microbench = "kvslab.microbench:main"

[tool.hatch.build.targets.wheel]
packages = ["kvslab"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
