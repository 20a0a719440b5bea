"""Chat with Mistral and generate images with Gemini, with sessions kept locally."""

__version__ = "0.1.0"
