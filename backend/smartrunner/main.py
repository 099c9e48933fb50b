import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from smartrunner.api.runs import router as runs_router
from smartrunner.db import Base, engine
from smartrunner.models.run import Run  # noqa: F401  (import ensures table is registered)
from smartrunner.core.config import settings


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Smart Runner")

# Allow the web client to call us with its bearer token
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create DB tables on startup
Base.metadata.create_all(bind=engine)

app.include_router(runs_router)


@app.get("/")
def root():
    return {"message": "Smart Runner server is running"}
