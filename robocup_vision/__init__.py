"""GameController protocol and listener, camera geometry, sensor syncing, point clouds and hand-eye calibration for RoboCup robots."""

__version__ = "0.1.0"