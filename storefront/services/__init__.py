# Services Module
from .money import format_price, from_minor_units, to_minor_units

__all__ = ["format_price", "from_minor_units", "to_minor_units"]
