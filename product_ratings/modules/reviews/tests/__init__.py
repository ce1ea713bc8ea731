# product_ratings/modules/reviews/tests/__init__.py
