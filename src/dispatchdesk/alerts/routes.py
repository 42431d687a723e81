"""HTTP route handlers for emergency alerts.

Routes (mounted under ``/api``):
- POST   /alerts                         → Report a new alert
- GET    /alerts                         → List alerts (filters + pagination)
- GET    /alerts/stats                   → Totals by status, priority, type
- GET    /alerts/station/{station_id}    → A station's alerts
- GET    /alerts/reporter/{reporter_id}  → A reporter's alerts
- GET    /alerts/{alert_id}              → One alert
- PATCH  /alerts/{alert_id}              → Edit fields / change status
- DELETE /alerts/{alert_id}              → Delete
- POST   /alerts/{alert_id}/dispatch     → Accept and provision an incident
- POST   /alerts/{alert_id}/decline      → Reject with a reason
- POST   /alerts/{alert_id}/refer        → Refer to another station
"""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from dispatchdesk.alerts import tools
from dispatchdesk.core.web import json_result, query_args, read_json


async def create_alert(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    return json_result(await tools.create_alert(body), status_code=201)


async def list_alerts(request: Request) -> JSONResponse:
    args = query_args(
        request, "station_id", "reporter_id", "status", "priority", "incident_type", "page", "limit"
    )
    return json_result(await tools.list_alerts(**args))


async def alert_stats(request: Request) -> JSONResponse:
    args = query_args(request, "station_id", "start_date", "end_date")
    return json_result(await tools.get_alert_stats(**args))


async def station_alerts(request: Request) -> JSONResponse:
    args = query_args(request, "status", "priority", "page", "limit")
    return json_result(
        await tools.list_alerts_by_station(request.path_params["station_id"], **args)
    )


async def reporter_alerts(request: Request) -> JSONResponse:
    args = query_args(request, "page", "limit")
    return json_result(
        await tools.list_alerts_by_reporter(request.path_params["reporter_id"], **args)
    )


async def get_alert(request: Request) -> JSONResponse:
    return json_result(await tools.get_alert(request.path_params["alert_id"]))


async def update_alert(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    return json_result(await tools.update_alert(request.path_params["alert_id"], body))


async def delete_alert(request: Request) -> JSONResponse:
    return json_result(await tools.delete_alert(request.path_params["alert_id"]))


async def dispatch_alert(request: Request) -> JSONResponse:
    return json_result(await tools.dispatch_alert(request.path_params["alert_id"]))


async def decline_alert(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    return json_result(
        await tools.decline_alert(request.path_params["alert_id"], str(body.get("reason") or ""))
    )


async def refer_alert(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    result = await tools.refer_alert(
        request.path_params["alert_id"],
        str(body.get("station_id") or ""),
        str(body.get("reason") or ""),
    )
    return json_result(result, status_code=201)


# Order matters: exact paths before parameterized paths
routes = [
    Route("/alerts", create_alert, methods=["POST"]),
    Route("/alerts", list_alerts, methods=["GET"]),
    Route("/alerts/stats", alert_stats, methods=["GET"]),
    Route("/alerts/station/{station_id}", station_alerts, methods=["GET"]),
    Route("/alerts/reporter/{reporter_id}", reporter_alerts, methods=["GET"]),
    Route("/alerts/{alert_id}", get_alert, methods=["GET"]),
    Route("/alerts/{alert_id}", update_alert, methods=["PATCH"]),
    Route("/alerts/{alert_id}", delete_alert, methods=["DELETE"]),
    Route("/alerts/{alert_id}/dispatch", dispatch_alert, methods=["POST"]),
    Route("/alerts/{alert_id}/decline", decline_alert, methods=["POST"]),
    Route("/alerts/{alert_id}/refer", refer_alert, methods=["POST"]),
]
