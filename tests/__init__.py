"""
Tests package for the Social Media Agent

This package contains all unit and integration tests.

Test organization:
- test_facebook_client.py / test_instagram_client.py / test_tiktok_client.py: platform adapters
- test_publisher.py: multi-platform orchestration
- test_auth_router.py / test_server.py: OAuth glue and the HTTP edge
- test_http.py, test_config.py, test_token_store.py, test_utils.py: shared plumbing
- conftest.py: Shared fixtures and test utilities
"""

__version__ = "1.0.0"
