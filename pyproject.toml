[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kustodata"
version = "1.0.0"
description = "Building blocks for Kusto clients: safe KQL query building, query parameters, errors, response decoding, tracing details and cloud metadata."
requires-python = ">=3.10"
keywords = ["kusto", "kql", "query builder", "query parameters", "database"]
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
    "Topic :: Database :: Front-Ends",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kustodata"]

[tool.pytest.ini_options]
addopts = "-ra"
