[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "distlab"
version = "0.1.0"
description = "Simulated RPC network, versioned key/value service, lock and MapReduce for distributed-systems experiments"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "distributed-systems",
    "mapreduce",
    "rpc",
    "key-value",
    "lock",
    "simulation",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
distlab-mrcoordinator = "distlab.coordinator:main"
distlab-mrworker = "distlab.worker:main"
distlab-mrsequential = "distlab.sequential:main"

[tool.hatch.build.targets.wheel]
packages = ["distlab"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
