"""A fixed-capacity linear memory pool with droplets, marks, snapshots, views and a ring writer."""

__version__ = "0.2.0"

__all__ = ["__version__"]