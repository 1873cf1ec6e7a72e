"""
Backend package for the bucket list API.

This package provides the FastAPI application together with record store,
auth and render service abstractions, each with a hosted implementation
(Supabase, Cloudinary) and an in-memory one for tests and local runs.
"""
