"""Tests for the adherence engine."""
