from __future__ import annotations

import os

import uvicorn


def main() -> None:
    host = os.getenv("PORTAL_AUTH_HOST", "0.0.0.0")
    port = int(os.getenv("PORTAL_AUTH_PORT", "8101"))
    uvicorn.run("portal_auth.app:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
