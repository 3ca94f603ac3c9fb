[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "espkit"
version = "0.1.0"
description = "A small MQTT 3.1.1 client, debounced push-button handling and an uptime/wall-clock helper"
requires-python = ">=3.10"
dependencies = []
keywords = ["mqtt", "button", "debounce", "ntp", "embedded", "iot"]
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
    "Topic :: Communications",
    "Topic :: Home Automation",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["espkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
