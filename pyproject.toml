[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fb2kit"
version = "0.1.0"
description = "Building blocks for e-book conversion: TeX hyphenation, JPEG quality detection, MOBI/AZW3 post-processing and EPUB packaging"
requires-python = ">=3.10"
keywords = ["fb2", "epub", "mobi", "azw3", "kindle", "hyphenation", "ebook", "apnx"]
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
    "Topic :: Text Processing :: Markup :: XML",
    "Topic :: Text Processing :: Linguistic",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fb2kit"]

[tool.pytest.ini_options]
addopts = "-ra"
