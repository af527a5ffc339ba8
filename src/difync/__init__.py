"""difync: keep local Dify DSL files in sync with Dify console apps."""

__version__ = "0.3.0"
