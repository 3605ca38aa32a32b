"""Run the chart-identity command line tool with `python -m chart_identity`."""

from chart_identity.tool.chart_identity import main


if __name__ == "__main__":
    main()
