"""
Readback Analysis Engine - adaptive readback evaluation for ATC training.

This package provides the FastAPI service that scores student pilot readbacks
against air-traffic-control instructions and adapts its scoring weights from
instructor corrections.

Subpackages:
- core: Settings, database pool and FastAPI dependencies
- models: Enums and Pydantic schemas for requests, responses and model state
- knowledge: Read-only phraseology, readback requirement and reference tables
- services: Parser, context builder, pairing, error engine and adaptive model store
- sql: Query strings for the relational model-state store
- api: FastAPI routers
"""

__version__ = "1.0.0"
