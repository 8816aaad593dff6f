"""
streetcam test suite

- unit/: unit tests for individual components (no network access)
- conftest.py: shared fixtures (manual executor, fake catalog, projections)
"""
