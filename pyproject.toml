[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "selfcar"
version = "0.1.0"
description = "Localization, sensor drivers and drive-by-wire control for a small autonomous vehicle"
requires-python = ">=3.10"
keywords = [
    "autonomous-driving",
    "kalman-filter",
    "utm",
    "gnss",
    "imu",
    "localization",
    "erp42",
    "serial",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
selfcar-control = "selfcar.controller:main"
selfcar-ebimu = "selfcar.ebimu:main"

[tool.hatch.build.targets.wheel]
packages = ["selfcar"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
