"""fleetcollect - run host data collectors and ship their output."""

__version__ = "0.1.0"
