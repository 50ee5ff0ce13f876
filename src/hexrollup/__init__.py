"""`hexrollup` - roll point visits up into a multi-resolution H3 hexagon index.

Subpackages:
- grid: Indexing, region filters, aggregation, rollup
- storage: Per-resolution tables, watermark upsert engine, point sources
- pipeline: Orchestrator, run ledger
- export: Level JSON, GeoJSON, hex maps
- schemas: Layered pydantic configuration
- contracts: Stage invariants and failure taxonomy
"""

__version__ = "0.1.0"
