"""HTTP route handlers for referrals.

Routes (mounted under ``/api``):
- POST   /referrals                          → Refer an alert or incident
- GET    /referrals                          → List (filters + pagination)
- GET    /referrals/data/{data_id}           → Referral history of a document
- GET    /referrals/{referral_id}            → One referral
- PATCH  /referrals/{referral_id}            → Accept/reject, response notes
- DELETE /referrals/{referral_id}            → Delete (releases a pending one)
"""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from dispatchdesk.core.results import error_result
from dispatchdesk.core.web import json_result, query_args, read_json
from dispatchdesk.referrals import tools

_REQUIRED = ("data_id", "data_type", "from_station_id", "to_station_id", "reason")


async def create_referral(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    missing = [f for f in _REQUIRED if not body.get(f)]
    if missing:
        return json_result(error_result(f"Missing required field(s): {', '.join(missing)}"))
    result = await tools.create_referral(*(str(body[f]) for f in _REQUIRED))
    return json_result(result, status_code=201)


async def list_referrals(request: Request) -> JSONResponse:
    args = query_args(
        request,
        "status",
        "data_type",
        "from_station_id",
        "to_station_id",
        "station_id",
        "page",
        "limit",
    )
    return json_result(await tools.list_referrals(**args))


async def referrals_for_data(request: Request) -> JSONResponse:
    args = query_args(request, "data_type")
    return json_result(await tools.list_referrals_for_data(request.path_params["data_id"], **args))


async def get_referral(request: Request) -> JSONResponse:
    return json_result(await tools.get_referral(request.path_params["referral_id"]))


async def update_referral(request: Request) -> JSONResponse:
    body = await read_json(request)
    if isinstance(body, JSONResponse):
        return body
    result = await tools.update_referral(
        request.path_params["referral_id"],
        status=body.get("status"),
        response_notes=body.get("response_notes"),
    )
    return json_result(result)


async def delete_referral(request: Request) -> JSONResponse:
    return json_result(await tools.delete_referral(request.path_params["referral_id"]))


routes = [
    Route("/referrals", create_referral, methods=["POST"]),
    Route("/referrals", list_referrals, methods=["GET"]),
    Route("/referrals/data/{data_id}", referrals_for_data, methods=["GET"]),
    Route("/referrals/{referral_id}", get_referral, methods=["GET"]),
    Route("/referrals/{referral_id}", update_referral, methods=["PATCH"]),
    Route("/referrals/{referral_id}", delete_referral, methods=["DELETE"]),
]
