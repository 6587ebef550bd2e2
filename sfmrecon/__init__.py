"""Structure-from-motion reconstruction from matched image features, with point-cloud file output and a directory browser."""

__version__ = "0.1.0"