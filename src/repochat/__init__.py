"""Repository question-answering agent built around OpenAI function calling."""

__version__ = "0.1.0"

__all__ = ["__version__"]
