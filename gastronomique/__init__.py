"""
Gastronomique - Recipe & Article Publishing Backend

A single FastAPI service backed by SQLite that publishes recipes, articles,
categories and tags, with a paired admin API protected by signed session
cookies or HTTP Basic credentials.
"""
