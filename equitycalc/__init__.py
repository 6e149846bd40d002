"""equitycalc: vesting, tax and exit-scenario calculations for equity grants."""

__version__ = "0.1.0"
