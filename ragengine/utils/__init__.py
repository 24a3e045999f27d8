"""Shared utilities: errors, logging, concurrency, rate limiting, retry and text helpers."""
