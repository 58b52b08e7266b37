from .catalog import ModelCatalog, ModelInfo
from .chat import ChatService
from .config import RouterConfig
from .errors import (
    ApiError,
    AuthenticationError,
    ErrorClassification,
    ErrorKind,
    NetworkError,
    ProviderError,
    RequestTimeoutError,
    UnknownError,
    ValidationError,
    classify_error,
)
from .gateway import Gateway, create_gateway
from .image_generation import GeneratedImage, ImageGenerationService
from .providers import ByteStream, LocalProvider, ModelProvider, OpenRouterProvider
from .router import ModelRouter, create_router
from .schemas import ChatMessage, CompletionRequest, CompletionResponse, ResponsesRequest

__all__ = [
    "ApiError",
    "AuthenticationError",
    "ByteStream",
    "ChatMessage",
    "ChatService",
    "CompletionRequest",
    "CompletionResponse",
    "ErrorClassification",
    "ErrorKind",
    "Gateway",
    "GeneratedImage",
    "ImageGenerationService",
    "LocalProvider",
    "ModelCatalog",
    "ModelInfo",
    "ModelProvider",
    "ModelRouter",
    "NetworkError",
    "OpenRouterProvider",
    "ProviderError",
    "RequestTimeoutError",
    "ResponsesRequest",
    "RouterConfig",
    "UnknownError",
    "ValidationError",
    "classify_error",
    "create_gateway",
    "create_router",
]
