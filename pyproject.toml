[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "trellisweb"
version = "0.1.0"
description = "Building blocks for a small web framework: routing, parameters, i18n, interceptors, jobs, signing and mail."
requires-python = ">=3.10"
dependencies = []
keywords = ["web", "framework", "router", "i18n", "smtp", "jobs", "interceptors"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["trellisweb"]

[tool.pytest.ini_options]
addopts = "-ra"
