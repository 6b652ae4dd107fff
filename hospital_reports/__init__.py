__version__ = "1.0.0"
__title__ = "Hospital Operations Reports"
__description__ = "Read-only analytical reports over a normalized hospital operations schema"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__title__",
    "__description__",
    "__license__"
]
