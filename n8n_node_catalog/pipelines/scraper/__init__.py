"""Stage 1: Node documentation scraper.

Discovers node pages from the n8n integration listings and extracts a raw
record from each page:
- Listing pages (root and per category)
- Node detail pages, fetched in rate-limited batches
"""
