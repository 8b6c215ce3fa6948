"""Run the API with uvicorn: ``python -m filevault``."""
import uvicorn

from filevault.config import settings


if __name__ == "__main__":
    uvicorn.run("filevault.main:app", host="0.0.0.0", port=settings.API_PORT)
