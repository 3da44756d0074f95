"""Deploy Go handlers as AWS Lambda functions."""

__version__ = "0.1.0"
