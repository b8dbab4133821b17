[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lakepool"
version = "0.2.0"
description = "A fixed-capacity linear memory pool with droplets, marks, snapshots, views and sandboxed rollback."
requires-python = ">=3.10"
keywords = ["arena", "memory-pool", "bump-allocator", "buffer", "checkpoint"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Typing :: Typed",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lakepool"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
