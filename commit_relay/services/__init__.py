# Services package

from commit_relay.services.proxy_relay import ProxyRelay, RelayResult
from commit_relay.services.webhook_ingestor import WebhookAck, WebhookIngestor

__all__ = [
    "ProxyRelay",
    "RelayResult",
    "WebhookIngestor",
    "WebhookAck",
]
