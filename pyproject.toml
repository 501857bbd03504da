[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dsh"
version = "0.1.0"
description = "A small shell that runs command pipelines locally or over a TCP connection"
requires-python = ">=3.10"
dependencies = []
keywords = ["shell", "pipeline", "remote shell", "tcp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Shells",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dsh = "dsh.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dsh"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
