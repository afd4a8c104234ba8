[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "echoloop"
version = "0.1.0"
description = "A small non-blocking TCP echo server with a companion load generator."
requires-python = ">=3.10"
dependencies = []
keywords = ["echo", "tcp", "server", "selectors", "stress", "load-testing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
echoloop = "echoloop.cli:main"
echoloop-stress = "echoloop.stress:main"

[tool.hatch.build.targets.wheel]
packages = ["echoloop"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
