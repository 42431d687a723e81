"""HTTP route handlers for incidents and turnout slips.

Routes (mounted under ``/api``):
- POST   /incidents                              → Open an incident manually
- GET    /incidents                              → List (station/status/department/unit)
- GET    /incidents/stats                        → Counts and average times
- GET    /incidents/alert/{alert_id}             → Incident for an alert
- GET    /incidents/{incident_id}                → One incident
- PATCH  /incidents/{incident_id}                → Reassign department/unit
- DELETE /incidents/{incident_id}                → Delete
- PATCH  /incidents/{incident_id}/status         → Advance lifecycle status
- GET    /incidents/{incident_id}/turnout-slip   → Stored turnout slip
- POST   /incidents/{incident_id}/turnout-slip   → Regenerate the slip
- GET    /turnout-slips                          → List slips (optional station_id)
"""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from dispatchdesk.core.results import error_result
from dispatchdesk.core.web import json_result, query_args, read_json
from dispatchdesk.incidents import tools, turnout


async def create_incident(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    missing = [f for f in ("alert_id", "department_id", "unit_id") if not body.get(f)]
    if missing:
        return json_result(error_result(f"Missing required field(s): {', '.join(missing)}"))
    result = await tools.create_incident(
        body["alert_id"],
        body["department_id"],
        body["unit_id"],
        status=body.get("status") or "active",
    )
    return json_result(result, status_code=201)


async def list_incidents(request: Request) -> JSONResponse:
    args = query_args(request, "station_id", "status", "department_id", "unit_id")
    return json_result(await tools.list_incidents(**args))


async def incident_stats(request: Request) -> JSONResponse:
    args = query_args(request, "station_id")
    return json_result(await tools.get_incident_stats(**args))


async def incident_for_alert(request: Request) -> JSONResponse:
    return json_result(await tools.get_incident_by_alert(request.path_params["alert_id"]))


async def get_incident(request: Request) -> JSONResponse:
    return json_result(await tools.get_incident(request.path_params["incident_id"]))


async def update_incident(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    result = await tools.update_incident(
        request.path_params["incident_id"],
        department_id=body.get("department_id"),
        unit_id=body.get("unit_id"),
    )
    return json_result(result)


async def delete_incident(request: Request) -> JSONResponse:
    return json_result(await tools.delete_incident(request.path_params["incident_id"]))


async def update_status(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    if not body.get("status"):
        return json_result(error_result("status is required"))
    result = await tools.update_incident_status(
        request.path_params["incident_id"],
        str(body["status"]),
        timestamp=body.get("timestamp"),
    )
    return json_result(result)


async def get_turnout_slip(request: Request) -> JSONResponse:
    return json_result(await turnout.get_turnout_slip(request.path_params["incident_id"]))


async def regenerate_turnout_slip(request: Request) -> JSONResponse:
    return json_result(await turnout.regenerate_turnout_slip(request.path_params["incident_id"]))


async def list_turnout_slips(request: Request) -> JSONResponse:
    args = query_args(request, "station_id")
    return json_result(await turnout.list_turnout_slips(**args))


routes = [
    Route("/incidents", create_incident, methods=["POST"]),
    Route("/incidents", list_incidents, methods=["GET"]),
    Route("/incidents/stats", incident_stats, methods=["GET"]),
    Route("/incidents/alert/{alert_id}", incident_for_alert, methods=["GET"]),
    Route("/incidents/{incident_id}", get_incident, methods=["GET"]),
    Route("/incidents/{incident_id}", update_incident, methods=["PATCH"]),
    Route("/incidents/{incident_id}", delete_incident, methods=["DELETE"]),
    Route("/incidents/{incident_id}/status", update_status, methods=["PATCH"]),
    Route("/incidents/{incident_id}/turnout-slip", get_turnout_slip, methods=["GET"]),
    Route("/incidents/{incident_id}/turnout-slip", regenerate_turnout_slip, methods=["POST"]),
    Route("/turnout-slips", list_turnout_slips, methods=["GET"]),
]
