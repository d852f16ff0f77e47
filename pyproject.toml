[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "courtplay"
version = "0.1.0"
description = "Courtroom role-play client core: packets, chat logs, countdowns, music loop data, animation playback and a local demo replay server"
requires-python = ">=3.10"
keywords = ["courtroom", "role-playing", "demo", "websocket", "animation", "packets"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Role-Playing",
]
dependencies = [
    "pillow",
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
courtplay-demo = "courtplay.demo_server:main"

[tool.hatch.build.targets.wheel]
packages = ["courtplay"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
