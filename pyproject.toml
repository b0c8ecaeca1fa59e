[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cvoperator"
version = "0.1.0"
description = "Manifest parsing, resource merging, apply helpers and update-graph tools for cluster version management"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "kubernetes",
    "openshift",
    "manifests",
    "cluster-version",
    "cincinnati",
    "semver",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["cvoperator"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
