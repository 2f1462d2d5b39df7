[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meshctl"
version = "0.1.0"
description = "Building blocks for a mesh VPN control server: MagicDNS domains, DERP maps, STUN, a key-value store and CLI output helpers."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "vpn",
    "mesh",
    "wireguard",
    "derp",
    "stun",
    "magicdns",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["meshctl"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
