"""Test suite for pageforge."""
