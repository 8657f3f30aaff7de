[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kernsim"
version = "0.1.0"
description = "A simulated teaching kernel boot: console formatting, device-tree memory discovery and a first-fit physical page allocator"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "simulation", "memory-management", "first-fit", "device-tree", "teaching"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kernsim = "kernsim.kernel:main"

[tool.hatch.build.targets.wheel]
packages = ["kernsim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
