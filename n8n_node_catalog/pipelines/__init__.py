"""Acquisition and normalization pipeline for the n8n node catalog.

Stage 1: Scraper - Discovers node pages and extracts raw records
Stage 2: Transform - Normalizes, validates and merges records into the catalog

Results are persisted to dated artifact folders for later inspection.
"""
