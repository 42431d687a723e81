"""HTTP route handlers for the station directory and reporters.

Routes (mounted under ``/api``):
- POST  /stations                          → Register a station
- GET   /stations                          → List (optional status)
- GET   /stations/{station_id}             → One station with its flags
- PATCH /stations/{station_id}/status      → In/out of commission
- POST  /stations/{station_id}/flags       → Recompute aggregate flags
- GET   /stations/{station_id}/departments → A station's departments
- POST  /departments                       → Create a department
- GET   /departments/{department_id}/units → A department's units
- POST  /units                             → Create a unit
- PATCH /units/{unit_id}                   → Take a unit on/off duty
- POST  /citizens                          → Register a citizen
- POST  /personnel                         → Register fire personnel
- GET   /reporters/{reporter_id}           → Look up a citizen or personnel
"""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from dispatchdesk.core.results import error_result, not_found
from dispatchdesk.core.web import json_result, query_args, read_json
from dispatchdesk.directory import tools
from dispatchdesk.directory.flags import refresh_station_flags

_STATION_FIELDS = ("address", "latitude", "longitude", "place_id", "phone_number", "status")
_PERSONNEL_FIELDS = ("phone", "rank", "role", "station_id", "department_id", "unit_id")


def _missing(body: dict, *fields: str) -> JSONResponse | None:
    missing = [f for f in fields if not body.get(f)]
    if missing:
        return json_result(error_result(f"Missing required field(s): {', '.join(missing)}"))
    return None


async def create_station(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    if error := _missing(body, "name"):
        return error
    kwargs = {f: body[f] for f in _STATION_FIELDS if f in body}
    return json_result(await tools.create_station(body["name"], **kwargs), status_code=201)


async def list_stations(request: Request) -> JSONResponse:
    return json_result(await tools.list_stations(**query_args(request, "status")))


async def get_station(request: Request) -> JSONResponse:
    return json_result(await tools.get_station(request.path_params["station_id"]))


async def set_station_status(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    result = await tools.set_station_status(
        request.path_params["station_id"], str(body.get("status") or "")
    )
    return json_result(result)


async def refresh_flags(request: Request) -> JSONResponse:
    station = await refresh_station_flags(request.path_params["station_id"])
    if station is None:
        return json_result(not_found("Station"))
    return json_result(station.model_dump(mode="json"))


async def station_departments(request: Request) -> JSONResponse:
    return json_result(await tools.list_departments(request.path_params["station_id"]))


async def create_department(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    if error := _missing(body, "name", "station_id"):
        return error
    result = await tools.create_department(
        body["name"], body["station_id"], description=body.get("description", "")
    )
    return json_result(result, status_code=201)


async def department_units(request: Request) -> JSONResponse:
    active_only = request.query_params.get("active_only", "").lower() in ("1", "true", "yes")
    return json_result(
        await tools.list_units(request.path_params["department_id"], active_only=active_only)
    )


async def create_unit(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    if error := _missing(body, "name", "department_id"):
        return error
    result = await tools.create_unit(
        body["name"], body["department_id"], is_active=bool(body.get("is_active", True))
    )
    return json_result(result, status_code=201)


async def update_unit(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    if not isinstance(body.get("is_active"), bool):
        return json_result(error_result("is_active must be true or false"))
    result = await tools.set_unit_active(request.path_params["unit_id"], body["is_active"])
    return json_result(result)


async def create_citizen(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    if error := _missing(body, "name"):
        return error
    result = await tools.create_citizen(
        body["name"],
        phone=body.get("phone", ""),
        email=body.get("email"),
        address=body.get("address", ""),
    )
    return json_result(result, status_code=201)


async def create_personnel(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    if error := _missing(body, "name"):
        return error
    kwargs = {f: body[f] for f in _PERSONNEL_FIELDS if f in body}
    return json_result(await tools.create_personnel(body["name"], **kwargs), status_code=201)


async def get_reporter(request: Request) -> JSONResponse:
    return json_result(await tools.get_reporter(request.path_params["reporter_id"]))


routes = [
    Route("/stations", create_station, methods=["POST"]),
    Route("/stations", list_stations, methods=["GET"]),
    Route("/stations/{station_id}", get_station, methods=["GET"]),
    Route("/stations/{station_id}/status", set_station_status, methods=["PATCH"]),
    Route("/stations/{station_id}/flags", refresh_flags, methods=["POST"]),
    Route("/stations/{station_id}/departments", station_departments, methods=["GET"]),
    Route("/departments", create_department, methods=["POST"]),
    Route("/departments/{department_id}/units", department_units, methods=["GET"]),
    Route("/units", create_unit, methods=["POST"]),
    Route("/units/{unit_id}", update_unit, methods=["PATCH"]),
    Route("/citizens", create_citizen, methods=["POST"]),
    Route("/personnel", create_personnel, methods=["POST"]),
    Route("/reporters/{reporter_id}", get_reporter, methods=["GET"]),
]
