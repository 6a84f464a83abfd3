"""Stage 2: Transformation, validation and merging of scraped node records."""
