import io
import os
import tempfile

import pytest
from PIL import Image

# app_local creates its directories at import time
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="cardcrop-test-")


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient
    from backend.app_local import app
    return TestClient(app)


@pytest.fixture
def card_jpeg() -> bytes:
    img = Image.new("RGB", (1200, 800), (255, 255, 255))
    img.paste((0, 0, 255), (60, 76, 1140, 724))
    buf = io.BytesIO()
    img.save(buf, "JPEG", quality=95)
    return buf.getvalue()
