from carelink.config import GatewayConfig
from carelink.gateway.base import (
    FAILURE_MESSAGES,
    ResponseGateway,
    classify_failure,
    failure_message,
)
from carelink.gateway.offline import OfflineResponseGateway


def build_gateway(config: GatewayConfig) -> ResponseGateway:
    """Create the configured gateway backend."""
    if config.backend == "openai":
        from carelink.gateway.openai_gateway import OpenAIResponseGateway

        return OpenAIResponseGateway(config)
    return OfflineResponseGateway()


__all__ = [
    "FAILURE_MESSAGES",
    "OfflineResponseGateway",
    "ResponseGateway",
    "build_gateway",
    "classify_failure",
    "failure_message",
]
