from typing import Any

from fastapi.responses import JSONResponse


def success(data: Any) -> dict:
    return {'success': True, 'data': data}


def error_response(status_code: int, message: str, details: Any = None) -> JSONResponse:
    error: dict[str, Any] = {'message': message}
    if details is not None:
        error['details'] = details
    return JSONResponse(status_code=status_code, content={'success': False, 'error': error})
