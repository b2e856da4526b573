"""DTR engine: daily time records from raw attendance scans."""

__version__ = "0.1.0"
