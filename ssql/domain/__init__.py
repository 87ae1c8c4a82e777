"""
Domain Layer

Query building and table declarations.
"""
