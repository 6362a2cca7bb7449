from fastapi import APIRouter, Request

from fund_valuation.infrastructure.market_data.request_queue import get_estimate_queue

router = APIRouter()


@router.get("/health")
def health(request: Request):
    poller = getattr(request.app.state, "poller", None)
    scheduler = getattr(request.app.state, "scheduler", None)
    queue = get_estimate_queue()

    return {
        "status": "ok",
        "services": {
            "scheduler": "running" if scheduler and scheduler.running else "disabled",
            "poller": {
                "generation": poller.applied_generation if poller else 0,
                "funds": len(poller.estimates) if poller else 0,
                "last_updated": poller.last_updated.isoformat() if poller and poller.last_updated else None,
                "last_error": poller.last_error if poller else None,
            },
            "estimate_queue": {"waiting": queue.size(), "in_flight": queue.in_flight()},
        },
    }
