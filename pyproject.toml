[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "podformat"
version = "0.1.0"
description = "Lay out and write FAT12/16/32 filesystems, with ext2 metadata helpers"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "fat32",
    "fat16",
    "fat12",
    "mkdosfs",
    "filesystem",
    "ext2",
    "bitmap",
    "badblocks",
    "disk-image",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
podformat-mkdosfs = "podformat.mkdosfs:main"

[tool.hatch.build.targets.wheel]
packages = ["podformat"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
