"""Resilient context enrichment for flare log entries.

This package acquires optional environmental and physiological context for a
logging action while guaranteeing that the action itself is never blocked or
failed by unreliable providers.
"""
