[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "robocup-vision"
version = "0.1.0"
description = "Camera geometry, hand-eye calibration, sensor syncing, point clouds and RoboCup GameController protocol tools for humanoid soccer robots"
requires-python = ">=3.10"
keywords = [
    "robocup",
    "robotics",
    "computer-vision",
    "camera-calibration",
    "hand-eye",
    "point-cloud",
    "game-controller",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]
dependencies = [
    "numpy",
    "scipy",
    "pyyaml",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
robocup-game-controller = "robocup_vision.game_controller:main"

[tool.hatch.build.targets.wheel]
packages = ["robocup_vision"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
