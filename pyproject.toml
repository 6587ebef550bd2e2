[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sfmrecon"
version = "0.1.0"
description = "Structure-from-motion reconstruction from matched image features: two-view geometry, triangulation and incremental point clouds"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "structure-from-motion",
    "sfm",
    "triangulation",
    "essential-matrix",
    "fundamental-matrix",
    "ransac",
    "point-cloud",
    "pcd",
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
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
sfmrecon = "sfmrecon.pipeline:main"
sfmrecon-browse = "sfmrecon.browse:main"

[tool.hatch.build.targets.wheel]
packages = ["sfmrecon"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
