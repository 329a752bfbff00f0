"""
Sinks - Pluggable outputs for results, events and alerts.

The tracker hands every completed result, derived event and alert to each
configured sink. Sinks own durable storage and downstream notification:
- jsonl: Daily JSONL files (persisted history window)
- webhook: Generic HTTP webhooks
- CallbackSink: In-process callbacks for host applications

SinkDispatcher delivers on its own thread; a sink that raises or stalls is
logged and never affects detection.
"""

import logging

from ..config.schemas import OutputConfig
from .base import CallbackSink, EventSink
from .dispatcher import Delivery, SinkDispatcher
from .jsonl import JsonlSink
from .webhook import WebhookSink

logger = logging.getLogger(__name__)


def build_sinks(output: OutputConfig) -> list[EventSink]:
    """Create the sinks enabled in the output config."""
    sinks: list[EventSink] = []
    if output.json_dir:
        sinks.append(JsonlSink(output.json_dir))
    if output.webhook_url:
        sinks.append(
            WebhookSink(output.webhook_url, include_results=output.webhook_include_results)
        )
    if not sinks:
        logger.info("No output sinks configured - results kept in memory only")
    return sinks


__all__ = [
    "CallbackSink",
    "Delivery",
    "EventSink",
    "JsonlSink",
    "SinkDispatcher",
    "WebhookSink",
    "build_sinks",
]
