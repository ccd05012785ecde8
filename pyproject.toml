[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rasqueue"
version = "0.1.0"
description = "Building blocks for a small queue server: event loop, readiness poller, double-ended list, 32-bit bit operations and server configuration"
requires-python = ">=3.10"
dependencies = []
keywords = ["event loop", "select", "epoll", "kqueue", "deque", "bitwise", "configuration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rasqueue"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
