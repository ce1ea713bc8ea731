"""
Product Ratings

Users rate a product once across four criteria (effectiveness, price-value,
ease-of-use, quality). A per-product ledger of running sums is kept in
lockstep with the reviews so averages are read in constant time.
"""

__version__ = "1.0.0"
