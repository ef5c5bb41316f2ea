[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minish"
version = "0.1.0"
description = "A small interactive command shell with pipes, redirections, quoting and variable expansion"
requires-python = ">=3.10"
keywords = ["shell", "command-line", "pipeline", "repl", "redirection"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: System Shells",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
minish = "minish.executor:main"

[tool.hatch.build.targets.wheel]
packages = ["minish"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
