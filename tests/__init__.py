"""Tests for the Medication Adherence integration."""
