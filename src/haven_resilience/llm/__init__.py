from .endpoint_manager import (
    LLMEndpointConfig,
    LLMEndpointManager,
    LLMEndpointsExhaustedError,
)

__all__ = ["LLMEndpointConfig", "LLMEndpointManager", "LLMEndpointsExhaustedError"]
