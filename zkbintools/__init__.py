"""Reading and dumping ZK binary files, and reading and writing typed XML trees."""

__version__ = "1.0.0"