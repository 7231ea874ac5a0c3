"""POST /api/actions: unified mutation endpoint."""

from decimal import InvalidOperation
from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.models import DunningLevel, InvoiceCreate, PaymentCreate
from core.money import to_cents
from utils.timezone import parse_date, today_utc


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "invoice": InvoiceHandler(services["invoice"]),
        "payment": PaymentHandler(services["payment"]),
        "reversal": ReversalHandler(services["reversal"]),
        "dunning": DunningHandler(services["dunning"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(result).model_dump(mode="json")

    return router


def _today_from(data: dict):
    value = data.get("today")
    return parse_date(value) if value else today_utc()


def _require(data: dict, key: str):
    if key not in data or data[key] in (None, ""):
        raise ValueError(f"'{key}' is required")
    return data[key]


def _amount_cents(data: dict, key: str = "amount_cents") -> int:
    """
    Integer cents from the request, in place.

    Callers send either cents under `key` or a major-unit amount under
    "amount" ("1000.00"), which is converted HALF_UP to the cent.
    """
    if "amount" in data:
        if key in data:
            raise ValueError(f"Give either 'amount' or '{key}', not both")
        value = data.pop("amount")
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValueError("'amount' must be a decimal string such as \"1000.00\"")
        try:
            data[key] = to_cents(value)
        except InvalidOperation:
            raise ValueError(f"'amount' is not a valid decimal: {value!r}")

    value = _require(data, key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"'{key}' must be an integer")
    return value


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class InvoiceHandler:
    ALLOWED_ACTIONS = {"create", "update_due_date"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        _amount_cents(data)
        invoice = self.service.create(InvoiceCreate(**data))
        return invoice.model_dump(mode="json")

    def _handle_update_due_date(self, data: dict):
        invoice = self.service.update_due_date(
            UUID(_require(data, "id")),
            parse_date(_require(data, "due_date")),
        )
        return invoice.model_dump(mode="json")


class PaymentHandler:
    ALLOWED_ACTIONS = {"apply"}

    def __init__(self, service):
        self.service = service

    def _handle_apply(self, data: dict):
        invoice_id = UUID(_require(data, "invoice_id"))
        data.pop("invoice_id")
        _amount_cents(data)
        result = self.service.apply_payment(invoice_id, PaymentCreate(**data))
        return result.model_dump(mode="json")


class ReversalHandler:
    ALLOWED_ACTIONS = {"cancel", "credit"}

    def __init__(self, service):
        self.service = service

    def _handle_cancel(self, data: dict):
        document = self.service.create_cancellation(
            UUID(_require(data, "invoice_id")),
            data.get("reason", ""),
            _today_from(data),
        )
        return document.model_dump(mode="json")

    def _handle_credit(self, data: dict):
        amount = _amount_cents(data)
        document = self.service.create_credit_note(
            UUID(_require(data, "invoice_id")),
            amount,
            data.get("reason", ""),
            _today_from(data),
        )
        return document.model_dump(mode="json")


class DunningHandler:
    ALLOWED_ACTIONS = {"evaluate", "issue"}

    def __init__(self, service):
        self.service = service

    def _handle_evaluate(self, data: dict):
        notice = self.service.evaluate(UUID(_require(data, "invoice_id")), _today_from(data))
        return notice.model_dump(mode="json") if notice else None

    def _handle_issue(self, data: dict):
        invoice_id = UUID(_require(data, "invoice_id"))
        raw_level = _require(data, "level")
        try:
            if isinstance(raw_level, str):
                level = DunningLevel[raw_level.upper()]
            else:
                level = DunningLevel(raw_level)
        except (KeyError, ValueError):
            raise ValueError(f"Unknown dunning level '{raw_level}'")

        notice = self.service.issue_reminder(invoice_id, level, _today_from(data))
        return notice.model_dump(mode="json") if notice else None
