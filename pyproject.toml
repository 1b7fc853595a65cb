[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "alphavm"
version = "0.1.0"
description = "Virtual machine and binary program format for the Alpha scripting language"
requires-python = ">=3.10"
dependencies = []
keywords = ["alpha", "virtual machine", "interpreter", "bytecode", "stack machine"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Interpreters",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
alpha-vm = "alphavm.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["alphavm"]

[tool.pytest.ini_options]
addopts = "-ra"
