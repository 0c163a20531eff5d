"""Budget tracker: budgets, actuals and the spreadsheet import pipeline."""

__version__ = "0.3.0"
