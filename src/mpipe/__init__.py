"""mpipe: send a single prompt to an LLM provider from the command line."""

__version__ = "0.1.0"
