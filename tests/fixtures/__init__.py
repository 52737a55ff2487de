"""Test fixtures for the workspace tree engine.

This package provides reusable test fixtures:
- tree: Item builders and the sample tree
- workspace: Workspace instances driven by a manual sync scheduler
- api: TestClient wired to a fresh Workspace
"""
