import uvicorn

from luminal.core.app_factory import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run("luminal.main:app", host="0.0.0.0", port=8000, log_level="info")
