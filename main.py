import uvicorn

from gymcore.core.config import get_settings
from gymcore.main import app  # noqa: F401

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG_MODE)
