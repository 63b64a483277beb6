"""Tests for the Automower Platform integration."""
