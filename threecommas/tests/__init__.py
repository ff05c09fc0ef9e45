"""Tests for 3Commas client."""
