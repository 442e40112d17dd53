[build-system]
requires = ["setuptools>=61.0"]
build-backend = "setuptools.build_meta"

[project]
name = "mshell"
version = "0.1.0"
description = "Core of a small POSIX-style shell: ordered environment, builtins, here-documents and pipelines"
requires-python = ">=3.10"
dependencies = []
keywords = ["shell", "builtins", "pipeline", "heredoc", "environment"]
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
    "Topic :: System :: Shells",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools.packages.find]
include = ["mshell*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
