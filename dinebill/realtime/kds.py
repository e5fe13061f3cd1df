"""Kitchen display events and the bus that carries them."""

from dataclasses import dataclass, field
from typing import Any

from fastapi import Request

from dinebill.realtime.pubsub import PubSub

ORDER_CREATED = "ORDER_CREATED"
ORDER_UPDATED = "ORDER_UPDATED"
TABLE_SETTLED = "TABLE_SETTLED"


@dataclass(frozen=True)
class KdsEvent:
    type: str
    tenant_id: str
    order_id: str | None = None
    status: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict:
        data = {"type": self.type, "tenantId": self.tenant_id}
        if self.order_id is not None:
            data["orderId"] = self.order_id
        if self.status is not None:
            data["status"] = self.status
        data.update(self.extra)
        return data


KdsBus = PubSub[KdsEvent]


def order_created(tenant_id: str, order_id: str) -> KdsEvent:
    return KdsEvent(ORDER_CREATED, tenant_id, order_id=order_id)


def order_updated(tenant_id: str, order_id: str, status: str) -> KdsEvent:
    return KdsEvent(ORDER_UPDATED, tenant_id, order_id=order_id, status=status)


def table_settled(tenant_id: str, table_no: str, invoice_id: str) -> KdsEvent:
    return KdsEvent(TABLE_SETTLED, tenant_id, extra={"tableNo": table_no, "invoiceId": invoice_id})


def get_bus(request: Request) -> KdsBus:
    # created in main's startup hook, one per process
    return request.app.state.kds_bus
