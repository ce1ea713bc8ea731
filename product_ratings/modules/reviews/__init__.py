# product_ratings/modules/reviews/__init__.py

"""
Product Reviews and Rating Aggregation Module

Key Components:
- Models: product_reviews and product_rating_ledger tables
- Services: review store, uniqueness guard, aggregate ledger, the
  coordinator that applies each review write and its ledger delta in one
  transaction, and the average calculator
- Routers: HTTP endpoints for review and rating operations
"""
