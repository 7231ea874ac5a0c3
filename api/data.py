"""GET /api/data: unified read endpoint, plus the dunning scan trigger."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.services.dunning_service import ScanCommand
from utils.timezone import parse_date, today_utc


VALID_TYPES = {
    "invoices", "payments", "dunning", "reversals", "history",
    "project", "statistics", "document",
}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]
    payment_svc = services["payment"]
    reversal_svc = services["reversal"]
    dunning_svc = services["dunning"]
    project_svc = services["project"]
    statistics_svc = services["statistics"]

    @router.post("/dunning/scan")
    async def dunning_scan(request: Request, command: ScanCommand):
        report = dunning_svc.run_scan(command)
        return success_response(report.model_dump(mode="json")).model_dump(mode="json")

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        project_id: str | None = Query(None),
        filter: str | None = Query(None),
        on: str | None = Query(None, description="Evaluate status as of this date (YYYY-MM-DD)"),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        today = parse_date(on) if on else today_utc()

        if type == "invoices":
            return _handle_invoices(invoice_svc, id, project_id, filter, today)

        if type == "project":
            if not project_id:
                raise ValueError("'project' type requires 'project_id' parameter")
            summary = project_svc.summarize(UUID(project_id))
            return success_response(summary.model_dump(mode="json")).model_dump(mode="json")

        if type == "statistics":
            stats = statistics_svc.dunning_statistics(today)
            return success_response(stats.model_dump(mode="json")).model_dump(mode="json")

        if type == "document" and project_id:
            document = project_svc.settlement_document(UUID(project_id))
            return success_response(document.model_dump(mode="json")).model_dump(mode="json")

        if not id:
            raise ValueError(f"'{type}' type requires 'id' parameter")
        invoice_id = UUID(id)

        if type == "payments":
            data = [p.model_dump(mode="json") for p in payment_svc.list_payments(invoice_id)]
        elif type == "dunning":
            data = dunning_svc.get_state(invoice_id).model_dump(mode="json")
        elif type == "reversals":
            data = [r.model_dump(mode="json") for r in reversal_svc.list_reversals(invoice_id)]
        elif type == "history":
            invoice_svc.require(invoice_id)
            data = invoice_svc.audit.get_entity_history("invoice", invoice_id)
        else:
            data = invoice_svc.document(invoice_id).model_dump(mode="json")

        return success_response(data).model_dump(mode="json")

    return router


def _invoice_view(invoice, today) -> dict:
    data = invoice.model_dump(mode="json")
    data["status"] = invoice.status_on(today).value
    data["balance_due_cents"] = invoice.balance_due_cents
    return data


def _handle_invoices(invoice_svc, id, project_id, filter, today):
    if id:
        invoice = invoice_svc.require(UUID(id))
        return success_response(_invoice_view(invoice, today)).model_dump(mode="json")

    if filter == "overdue":
        invoices = invoice_svc.list_overdue(today)
    elif filter is not None:
        raise ValueError(f"Unknown filter '{filter}'. Valid filters: overdue")
    elif project_id:
        invoices = invoice_svc.list_for_project(UUID(project_id))
    else:
        invoices = invoice_svc.list_all()

    return success_response(
        [_invoice_view(i, today) for i in invoices]
    ).model_dump(mode="json")
