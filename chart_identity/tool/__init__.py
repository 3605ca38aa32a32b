"""Command line tool for resolving, building and checking releases of the chart."""
