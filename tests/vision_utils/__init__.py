"""Unit tests for the vision_utils package."""
