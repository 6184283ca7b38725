# medcrm/routes/utils/responses.py
from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def action_response(result: dict, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Send an action result body as-is; every failure is a 400."""
    status_code = success_status if result.get("success") else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))
