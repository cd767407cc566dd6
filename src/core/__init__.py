"""
Core business logic for exercise staging.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or the Anthropic SDK. Storage and extraction are reached through the
protocols in core.staging, so the whole pipeline runs in tests against
in-memory stores.
"""
