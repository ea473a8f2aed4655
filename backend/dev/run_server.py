import os
import sys

import uvicorn


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def main() -> int:
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    reload = _env_flag("RELOAD")
    log_level = os.getenv("LOG_LEVEL", "info")

    print(f"[server] serving citelens on http://{host}:{port} (reload={reload})", flush=True)
    uvicorn.run(
        "citelens.main:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["citelens"] if reload else None,
        log_level=log_level,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
