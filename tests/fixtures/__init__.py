"""Test fixtures for the OpenCDP client.

This package provides reusable test fixtures:
- cdp: Mock logger, mock tracker and MockTransport-backed client factory
- fake_server: In-process FastAPI stand-in for the OpenCDP API
"""
