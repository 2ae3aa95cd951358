from typing import Any


def error_response(error: str, code: str, **details: Any) -> dict[str, Any]:
    return {"error": error, "code": code, **details}
