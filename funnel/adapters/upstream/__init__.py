"""Upstream origin adapters.

Admitted requests are forwarded through AbstractUpstreamClient so tests can
substitute a fake origin.
"""
