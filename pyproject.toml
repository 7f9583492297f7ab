[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "corotools"
version = "0.0.2"
description = "Asyncio building blocks: monitors, workers, cron jobs and websocket client/server helpers"
requires-python = ">=3.10"
keywords = ["asyncio", "worker", "cron", "websocket", "monitor", "logging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Framework :: AsyncIO",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "websockets",
]

[tool.hatch.build.targets.wheel]
packages = ["corotools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
