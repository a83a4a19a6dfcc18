[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chatactor"
version = "0.1.0"
description = "One-to-one WebSocket chat server built from a routing server actor and per-user actors"
requires-python = ">=3.10"
keywords = ["chat", "websocket", "actor", "asyncio", "aiohttp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "aiohttp",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "aiohttp",
]

[project.scripts]
chatactor = "chatactor.app:main"

[tool.hatch.build.targets.wheel]
packages = ["chatactor"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
