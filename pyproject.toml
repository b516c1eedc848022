[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "paimeng"
version = "0.1.0"
description = "Chat bot building blocks: custom dialogues, Genshin account tools, daily note and check-in, and wish simulation"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "chatbot",
    "dialogue",
    "genshin",
    "gacha",
    "check-in",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Natural Language :: Chinese (Simplified)",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Games/Entertainment",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["paimeng"]

[tool.hatch.build.targets.sdist]
include = [
    "paimeng",
    "tests",
    "README.md",
]

[tool.pytest.ini_options]
addopts = "-ra"
