"""Tests for the chart-identity command line tool."""
