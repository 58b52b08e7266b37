from ._http import ByteStream
from .base import ModelProvider
from .local import LocalProvider, is_local_model
from .openrouter import OpenRouterProvider

__all__ = ["ByteStream", "LocalProvider", "ModelProvider", "OpenRouterProvider", "is_local_model"]
