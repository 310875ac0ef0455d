"""External service communication layer."""
import httpx
import logging
import time
from typing import Dict, Any

from config import NOTIFICATION_SERVICE_URL
from monitoring import external_notification_duration_histogram

logger = logging.getLogger(__name__)


class NotificationClient:
    """Client for the notification service.

    Notifications are best effort: failures are logged and recorded in the
    duration histogram, never raised to the caller.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        """
        Initialize notification client.

        Args:
            http_client: Async HTTP client
        """
        self.http_client = http_client

    async def _send(self, event: str, payload: Dict[str, Any]) -> bool:
        # HTTPXClientInstrumentor already creates spans for HTTP calls
        start_time = time.time()
        status = "success"
        status_code = None
        try:
            response = await self.http_client.post(
                f"{NOTIFICATION_SERVICE_URL}/api/notifications",
                json={"event": event, **payload}
            )
            status_code = response.status_code
            if response.status_code >= 400:
                status = "error"
                logger.warning("Notification service returned error status", extra={
                    "status_code": response.status_code,
                    "event": event
                })
                return False
            return True
        except Exception as e:
            status = "error"
            status_code = 0  # Connection failure
            logger.error("Failed to send notification", extra={
                "event": event,
                "error": str(e)
            })
            return False
        finally:
            duration = time.time() - start_time
            external_notification_duration_histogram.record(
                duration,
                {
                    "event": event,
                    "status": status,
                    "status_code": str(status_code) if status_code else "0"
                }
            )

    async def cod_order_created(self, order: Dict[str, Any]) -> bool:
        """
        Tell the notification service a COD order was placed.

        Args:
            order: The stored COD order

        Returns:
            True if the notification was accepted
        """
        return await self._send("cod_order.created", {
            "order_id": order["id"],
            "user_id": order["user_id"],
            "product_name": order["product_name"],
            "amount": order["product_total_price"]
        })

    async def cod_order_status_changed(self, order: Dict[str, Any]) -> bool:
        """
        Tell the notification service a COD order moved to a new status.

        Args:
            order: The updated COD order

        Returns:
            True if the notification was accepted
        """
        return await self._send("cod_order.status_changed", {
            "order_id": order["id"],
            "user_id": order["user_id"],
            "status": order["status"]
        })
