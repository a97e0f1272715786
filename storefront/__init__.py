"""
Storefront service package.

FastAPI application with database, object storage and change feed
abstractions, so the same code runs against Postgres/S3/Redis in
production and in-memory backends in tests and local development.
"""
