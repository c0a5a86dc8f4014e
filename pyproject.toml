[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slbridge"
version = "0.2.0"
description = "Audio plumbing between slmodemd socket audio and RTP, with G.711 µ-law conversion"
requires-python = ">=3.11"
dependencies = []
keywords = [
    "rtp",
    "sdp",
    "g711",
    "ulaw",
    "pcmu",
    "modem",
    "slmodemd",
    "telephony",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Communications :: Telephony",
    "Topic :: Multimedia :: Sound/Audio :: Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["slbridge"]

[tool.hatch.build.targets.sdist]
include = [
    "slbridge",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
files = ["slbridge"]
