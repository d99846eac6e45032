"""
Webhook delivery of inbound messages to the developer's endpoint.

Every call to `deliver` produces exactly one WebhookEvent, whatever
happens on the wire. Transport failures are retried with exponential
backoff; any HTTP response, including 4xx/5xx, ends the attempt loop.
"""
import asyncio
import json
import threading
import time
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, List, Optional, Protocol

import httpx

from sms_dev.core.errors import ConfigurationError, TransportError, ValidationError
from sms_dev.core.logging import get_logger
from sms_dev.core.metrics import record_webhook_delivery
from sms_dev.core.security import SIGNATURE_HEADER, compute_signature
from sms_dev.models.message import Message, utcnow
from sms_dev.models.webhook import (
    STATUS_NO_RESPONSE,
    STATUS_SKIPPED,
    WebhookConfig,
    WebhookEvent,
    inbound_payload,
)
from sms_dev.schemas.realtime import WsOutbound

logger = get_logger(__name__)

USER_AGENT = "sms-dev-webhook/1.0.0"
MAX_ERROR_BODY = 500


class EventPublisher(Protocol):
    def publish_global(self, event: WsOutbound) -> int: ...


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number `attempt` (1-based): 1, 2, 4, ..."""
    return float(2 ** (attempt - 1))


class WebhookService:
    """Delivers inbound messages and keeps a bounded history of outcomes."""
    
    def __init__(
        self,
        config: WebhookConfig,
        publisher: Optional[EventPublisher] = None,
        history_limit: int = 100,
        secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._config = config
        self._publisher = publisher
        self._secret = secret
        self._transport = transport
        self._sleep = sleep
        self._history: Deque[WebhookEvent] = deque(maxlen=history_limit)
        self._history_lock = threading.Lock()
        self._config_lock = threading.Lock()
    
    # Configuration
    
    @property
    def config(self) -> WebhookConfig:
        """Full live configuration, URL included. Internal use only."""
        return self._config
    
    def get_config(self) -> dict:
        """Redacted configuration safe to show outside the service."""
        return self._config.redacted()
    
    def update_config(self, **changes) -> WebhookConfig:
        """Merge `changes` into the live config and publish it as one new object."""
        if "retries" in changes and changes["retries"] is not None and changes["retries"] < 1:
            raise ValidationError("retries must be at least 1")
        if "timeout_ms" in changes and changes["timeout_ms"] is not None and changes["timeout_ms"] <= 0:
            raise ValidationError("timeout must be positive")
        
        with self._config_lock:
            try:
                updated = replace(self._config, **changes)
            except TypeError as exc:
                raise ValidationError(f"Unknown webhook setting: {exc}") from exc
            self._config = updated
        
        logger.info("Webhook config updated", extra={"extra_data": updated.redacted()})
        return updated
    
    # History
    
    def get_history(self) -> List[WebhookEvent]:
        with self._history_lock:
            return list(self._history)
    
    def clear_history(self) -> None:
        with self._history_lock:
            self._history.clear()
        logger.info("Webhook history cleared")
    
    def _record(self, event: WebhookEvent) -> None:
        with self._history_lock:
            self._history.appendleft(event)
    
    # Delivery
    
    async def deliver(self, message: Message) -> WebhookEvent:
        """Send `message` to the configured endpoint. Never raises for delivery failures."""
        config = self._config
        payload = inbound_payload(message)
        timestamp = utcnow()
        started = time.monotonic()
        
        try:
            url = self._resolve_target(config)
        except ConfigurationError as exc:
            logger.info("Webhook not configured - skipping webhook delivery")
            event = WebhookEvent(
                url="N/A",
                payload=payload,
                status=STATUS_SKIPPED,
                timestamp=timestamp,
                error=exc.message,
            )
        else:
            event = await self._deliver_to(url, payload, config, timestamp, started)
        
        self._record(event)
        record_webhook_delivery(event.outcome)
        if self._publisher is not None:
            self._publisher.publish_global(WsOutbound(type="webhook:sent", data=event.to_dict()))
        return event
    
    def _resolve_target(self, config: WebhookConfig) -> str:
        if not config.is_deliverable:
            raise ConfigurationError("Webhook URL not configured")
        return config.url
    
    async def _deliver_to(self, url: str, payload: dict, config: WebhookConfig,
                          timestamp: datetime, started: float) -> WebhookEvent:
        logger.info("Sending webhook", extra={"extra_data": {"message_id": payload["id"]}})
        try:
            response, attempts = await self._post_with_retry(url, payload, config)
        except TransportError as exc:
            logger.warning(
                f"Webhook error: {exc.message}",
                extra={"extra_data": {"message_id": payload["id"], "attempts": config.retries}}
            )
            return WebhookEvent(
                url=url,
                payload=payload,
                status=STATUS_NO_RESPONSE,
                timestamp=timestamp,
                duration=self._elapsed_ms(started),
                attempts=config.retries,
                error=exc.message,
            )
        
        error = None
        if not response.is_success:
            error = f"HTTP {response.status_code}: {response.text[:MAX_ERROR_BODY]}"
            logger.warning(
                f"Webhook failed: {error}",
                extra={"extra_data": {"message_id": payload["id"], "status": response.status_code}}
            )
        else:
            logger.info(
                f"Webhook delivered successfully ({response.status_code})",
                extra={"extra_data": {"message_id": payload["id"], "attempts": attempts}}
            )
        
        return WebhookEvent(
            url=url,
            payload=payload,
            status=response.status_code,
            timestamp=timestamp,
            duration=self._elapsed_ms(started),
            attempts=attempts,
            error=error,
        )
    
    async def _post_with_retry(self, url: str, payload: dict, config: WebhookConfig):
        body = json.dumps(payload).encode("utf-8")
        timeout_s = config.timeout_ms / 1000
        last_error = "Network error"
        
        async with httpx.AsyncClient(
            transport=self._transport, timeout=timeout_s, follow_redirects=True
        ) as client:
            for attempt in range(1, config.retries + 1):
                try:
                    # wait_for bounds the whole attempt; httpx timeouts are per phase
                    response = await asyncio.wait_for(
                        client.post(url, content=body, headers=self._build_headers(body, attempt)),
                        timeout=timeout_s,
                    )
                    return response, attempt
                except (asyncio.TimeoutError, httpx.TimeoutException):
                    last_error = f"Request timed out after {config.timeout_ms}ms"
                except httpx.RequestError as exc:
                    last_error = str(exc) or exc.__class__.__name__
                
                logger.info(
                    f"Webhook attempt {attempt}/{config.retries} failed: {last_error}",
                    extra={"extra_data": {"url_configured": True, "attempt": attempt}}
                )
                if attempt < config.retries:
                    await self._sleep(backoff_delay(attempt))
        
        raise TransportError(last_error)
    
    def _build_headers(self, body: bytes, attempt: int) -> dict:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-SMS-Dev-Webhook": "true",
            "X-SMS-Dev-Attempt": str(attempt),
        }
        if self._secret:
            headers[SIGNATURE_HEADER] = compute_signature(self._secret, body)
        return headers
    
    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
