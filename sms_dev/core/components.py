"""
Construction and teardown of the in-process engine, plus request dependencies.
"""
from dataclasses import dataclass

from fastapi import Request

from sms_dev.core.config import Settings
from sms_dev.core.logging import get_logger
from sms_dev.models.webhook import WebhookConfig
from sms_dev.services.broadcast import BroadcastHub
from sms_dev.services.conversations import ConversationIndex
from sms_dev.services.lifecycle import LifecycleScheduler
from sms_dev.services.message_store import MessageStore
from sms_dev.services.webhook import WebhookService

logger = get_logger(__name__)


@dataclass
class Components:
    """Everything that holds mutable simulator state, owned by one application."""
    
    settings: Settings
    store: MessageStore
    conversations: ConversationIndex
    hub: BroadcastHub
    scheduler: LifecycleScheduler
    webhooks: WebhookService
    
    @classmethod
    def build(cls, settings: Settings) -> "Components":
        store = MessageStore(cost=settings.message_cost)
        hub = BroadcastHub(store, max_pending=settings.subscriber_queue_size)
        webhooks = WebhookService(
            WebhookConfig(
                url=settings.webhook_url,
                enabled=settings.is_webhook_enabled,
                retries=settings.webhook_retries,
                timeout_ms=settings.webhook_timeout_ms,
            ),
            publisher=hub,
            history_limit=settings.webhook_history_limit,
            secret=settings.webhook_secret,
        )
        hub.bind_delivery(webhooks.deliver)
        scheduler = LifecycleScheduler(
            store,
            hub,
            sent_delay=settings.sent_delay_ms / 1000,
            delivered_delay=settings.delivered_delay_ms / 1000,
        )
        logger.info(
            "Simulator components ready",
            extra={"extra_data": {"webhook": webhooks.get_config()}}
        )
        return cls(
            settings=settings,
            store=store,
            conversations=ConversationIndex(
                store, settings.default_from_number, settings.system_number_prefix
            ),
            hub=hub,
            scheduler=scheduler,
            webhooks=webhooks,
        )
    
    async def aclose(self) -> None:
        """Abandon pending timers and deliveries; nothing is persisted."""
        await self.scheduler.shutdown()
        await self.hub.close()
        logger.info(
            "Simulator components stopped",
            extra={"extra_data": {"messages": self.store.count()}}
        )


def get_components(request: Request) -> Components:
    """Dependency returning the application's components."""
    return request.app.state.components


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.components.settings


def get_store(request: Request) -> MessageStore:
    return request.app.state.components.store


def get_scheduler(request: Request) -> LifecycleScheduler:
    return request.app.state.components.scheduler


def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.components.hub


def get_conversations(request: Request) -> ConversationIndex:
    return request.app.state.components.conversations


def get_webhook_service(request: Request) -> WebhookService:
    return request.app.state.components.webhooks
