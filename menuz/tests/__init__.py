"""Test suite for the Menuz backend."""
