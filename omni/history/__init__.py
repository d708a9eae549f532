"""Prompt-history package.

Stores recently submitted directives (deduplicated, capped, most recent
first) for reuse by the API and CLI adapters.
"""
