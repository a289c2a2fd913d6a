"""Golden key catalog: data-definition records behind a pending/approved workflow."""

__version__ = "0.1.0"
