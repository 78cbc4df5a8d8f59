"""Azure DevOps PR Agent pipeline task."""

__version__ = "1.0.0"
