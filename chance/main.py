import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chance.database import engine, Base

# Register every table before create_all
from chance.models.user import User  # noqa: F401
from chance.models.project import Project  # noqa: F401
from chance.models.project_member import ProjectMember  # noqa: F401
from chance.models.project_vote import ProjectVote  # noqa: F401
from chance.models.project_completed import ProjectCompleted  # noqa: F401
from chance.models.heartbeat import Heartbeat  # noqa: F401
from chance.models.heartbeat_like import HeartbeatLike  # noqa: F401
from chance.models.heartbeat_comment import HeartbeatComment  # noqa: F401
from chance.models.comment_like import CommentLike  # noqa: F401
from chance.models.spotlight import Spotlight  # noqa: F401
from chance.models.sharing_log import SharingLog  # noqa: F401

from chance.api.admin import router as admin_router
from chance.api.heartbeat import router as heartbeat_router
from chance.api.project import router as project_router
from chance.api.spotlight import router as spotlight_router
from chance.api.user import router as user_router

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

Base.metadata.create_all(bind=engine)

ENV = os.getenv("ENV", "dev")

app = FastAPI(
    title="Chance API",
    docs_url=None if ENV == "prod" else "/docs",
    redoc_url=None if ENV == "prod" else "/redoc",
)

origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(user_router)
app.include_router(project_router)
app.include_router(heartbeat_router)
app.include_router(spotlight_router)
app.include_router(admin_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
