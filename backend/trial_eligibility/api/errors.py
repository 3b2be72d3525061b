from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Error reported to the client as {"error": message}."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    headers = {"Allow": "POST"} if exc.status_code == 405 else None
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


def method_not_allowed():
    raise ApiError(405, "Method not allowed")
