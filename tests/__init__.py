"""Test suite for the coverage map stack."""
