# backend/run_local.py
import logging
import os
import pathlib

import uvicorn

ROOT = pathlib.Path(__file__).resolve().parents[1]

# Put data under backend/data by default
os.environ.setdefault("DATA_DIR", str(ROOT / "backend" / "data"))

if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("backend.app_local:app", host="127.0.0.1", port=8000, reload=True)
