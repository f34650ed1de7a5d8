"""Tests for the GitHub gateway."""
