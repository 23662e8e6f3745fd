"""Starlette middleware: request ids, access log, rate limiting."""
