[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imposm"
version = "0.1.0"
description = "OpenStreetMap tag mapping, filtering and matching for importing OSM data into spatial databases"
requires-python = ">=3.10"
keywords = ["openstreetmap", "osm", "gis", "mapping", "tags", "import"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: GIS",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["imposm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
