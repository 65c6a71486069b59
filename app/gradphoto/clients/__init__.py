"""
Graduation photo generator clients
"""
from .base import BaseGenerator, GeneratorResult, ImageExtraction, ImageFound, NoImage
from .azure import AzureGenerator
from .gemini import GeminiGenerator

PROVIDERS = {
    "gemini": GeminiGenerator,
    "azure": AzureGenerator,
}


def get_generator(provider: str = "gemini") -> BaseGenerator:
    """
    Factory function to get the appropriate generator.

    Args:
        provider: 'gemini' or 'azure'

    Returns:
        BaseGenerator instance
    """
    provider = provider.lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown provider: {provider}. Use one of: {', '.join(PROVIDERS)}.")
    return PROVIDERS[provider]()


__all__ = [
    "get_generator",
    "PROVIDERS",
    "BaseGenerator",
    "GeneratorResult",
    "ImageExtraction",
    "ImageFound",
    "NoImage",
    "AzureGenerator",
    "GeminiGenerator",
]
