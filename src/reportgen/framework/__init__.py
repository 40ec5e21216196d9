"""Pipeline building blocks: logging, arbitration, sources, aggregation and enrichment."""
