"""Test suite for the SkaterBot remote."""
