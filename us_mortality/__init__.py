"""us_mortality package initializer.

This package contains the data pipeline modules used by the command line
driver and the Shiny dashboard.  Modules include the CDC downloads, the
download cache, table normalization, group/reduce aggregation and plotting
helpers.  See individual module docstrings for details.
"""

__version__ = "0.1.0"
