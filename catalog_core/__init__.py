"""Product catalog core.

Domain model, key-value persistence and structural migrations for a
catalog of simple, composite and variable products.
"""

__version__ = "0.1.0"
