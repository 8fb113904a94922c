[build-system]
requires = ["setuptools>=68", "wheel"]
build-backend = "setuptools.build_meta"

[project]
name = "tankhangar"
version = "0.1.0"
description = "Player hangars, tank shop and simulated matches for a tank battle game, stored in SQLite"
requires-python = ">=3.10"
dependencies = []
keywords = ["game", "tanks", "hangar", "matchmaking", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Environment :: Console",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tankhangar = "tankhangar.cli:main"

[tool.setuptools.packages.find]
include = ["tankhangar*"]

[tool.pytest.ini_options]
addopts = "-ra"
