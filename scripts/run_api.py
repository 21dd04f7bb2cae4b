import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn

from accountgate.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("accountgate.main:app", host=settings.http_host, port=settings.http_port, reload=False)


if __name__ == "__main__":
    main()
