"""
Core business logic for tire data capture.

This package is framework-agnostic - it doesn't import FastAPI, boto3,
sqlite or FFmpeg wrappers. Infrastructure is passed in through small
protocols, so sampling, upload and measurement rules can be tested alone.
"""
