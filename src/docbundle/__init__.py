"""
Search → Bulk Retrieval → Archive Export

Client library for a remote document-management service: build search
filters, query the catalog, classify results for preview, download files
concurrently with partial-failure reporting, and bundle the successful
downloads into a single ZIP archive.
"""

__version__ = "0.1.0"
