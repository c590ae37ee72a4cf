"""pricelist-markup — Find the cost column in supplier pricelists and add markup prices."""

__version__ = "0.1.0"

DEFAULT_MARKUP_PERCENTAGES: tuple[int, ...] = (5, 10, 15, 20, 30)

MAX_ROWS_PER_SHEET = 5000
