"""Behaviour tests driven by the feature files under ``features/``."""
