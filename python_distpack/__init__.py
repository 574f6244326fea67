"""python-distpack.

A small packaging utility that bundles a Python app, the interpreter that runs
it and a selection of its standard library into one versioned tarball.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
