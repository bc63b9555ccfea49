"""
Tire Data - tire tread capture and measurement collection service.

This package contains the complete application:
- core: Framework-agnostic sampling, upload and measurement logic
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
