"""
Coverage Compass Backend Package.

Dimension coverage reconciliation, data-quality scoring and mapping-compliance
analysis for monthly marketing-performance extracts.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, and dependencies
    - models: Pydantic schemas and enums
    - services: Aggregation, scoring, compliance and history services
    - sql: Parameterized SQL queries for the history tables
"""

__version__ = "1.0.0"
