[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mqbridges"
version = "0.1.0"
description = "Message types, connection-setting parsers and publishing targets for bridging message-broker channels."
requires-python = ">=3.10"
dependencies = []
keywords = ["message-queue", "bridge", "events", "events-store", "queues"]
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
    "Framework :: AsyncIO",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["mqbridges"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
