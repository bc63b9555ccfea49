"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Media store (R2/S3)
- video: FFmpeg/FFprobe decoding and container metadata
- database: SQLite persistence for measurements

These wrappers translate between external formats and our domain models.
"""
