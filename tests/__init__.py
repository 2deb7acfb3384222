"""Test package for mailintake.

``tests/unit`` holds the fake-transport suites and ``tests/data`` the canned
``config.yaml`` applied by the autouse fixture in ``tests/conftest.py``.
"""
