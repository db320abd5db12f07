# buildrepo/__init__.py
"""buildrepo - build all out-of-date aports of one or more repositories."""

__version__ = "1.0.0"
