"""PromptSmith prompt optimization server"""

__version__ = "0.1.0"
