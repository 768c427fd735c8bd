"""Keep track of your local git repositories across machines."""

__version__ = "0.1.0"
