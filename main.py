from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Path, Depends, Response
from fastapi.responses import HTMLResponse
from json import JSONDecodeError
import uvicorn
from datetime import datetime
from typing import Any, Dict, List

from error_handler import InvalidPayload, Unauthorized, register_error_handlers
from middleware.auth_middleware import require_auth
from middleware.request_logger import request_logger
from models.schemas import (
    LoginResponse,
    PersonResponse,
    UserResponse,
    person_to_response,
    user_to_response
)
from services.auth_service import auth_service
from services.database_service import DatabaseService, database_service, get_database_service
from services.validation_service import (
    validate_create_payload,
    validate_id,
    validate_login_payload,
    validate_update_payload,
    validate_user_payload
)
from utils.config import Config
from utils.logging_config import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting Phonebook API...")
    try:
        Config.validate_config()
    except ValueError as e:
        if not Config.DEBUG:
            logger.error(f"❌ {e}")
            raise
        logger.warning(f"⚠️ {e}; DEBUG is on, tokens are signed with a development secret")
    # Raises when MongoDB is unreachable and the in-memory fallback is off
    db_connected = await database_service.connect()
    if db_connected:
        logger.info("✅ Database service connected successfully")
    else:
        logger.warning("⚠️ Database service running in fallback mode")
    auth_service.db = database_service
    logger.info("✅ Application startup completed")

    yield

    # Shutdown
    logger.info("🛑 Shutting down Phonebook API...")
    await database_service.close()
    logger.info("✅ Application shutdown completed")


app = FastAPI(
    title="Phonebook API",
    version="1.0.0",
    lifespan=lifespan
)
app.middleware("http")(request_logger)
register_error_handlers(app)


async def read_json_body(request: Request) -> Any:
    """Parse the request body; an empty body reads as an empty object."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        raise InvalidPayload("malformatted JSON body")


@app.get("/info", response_class=HTMLResponse)
async def info(database: DatabaseService = Depends(get_database_service)):
    count = await database.count_persons()
    now = datetime.now().astimezone()
    return f"<p>Phonebook has info for {count} people</p><p>{now.strftime('%a %b %d %Y %H:%M:%S GMT%z (%Z)')}</p>"


@app.get("/api/persons", response_model=List[PersonResponse])
async def list_persons(database: DatabaseService = Depends(get_database_service)):
    persons = await database.list_persons()
    return [person_to_response(p) for p in persons]


@app.get("/api/persons/{person_id}", response_model=PersonResponse)
async def get_person(
    person_id: str = Path(..., description="Person ID"),
    database: DatabaseService = Depends(get_database_service)
):
    person = await database.get_person(validate_id(person_id))
    return person_to_response(person)


@app.post("/api/persons", response_model=PersonResponse, status_code=201)
async def create_person(
    request: Request,
    user: Dict[str, Any] = Depends(require_auth),
    database: DatabaseService = Depends(get_database_service)
):
    fields = validate_create_payload(await read_json_body(request))
    person = await database.create_person(fields, user["_id"])
    logger.info(f"Person '{fields['name']}' added by {user['username']}")
    return person_to_response(person)


@app.put("/api/persons/{person_id}", response_model=PersonResponse)
async def replace_person(
    request: Request,
    person_id: str = Path(..., description="Person ID"),
    database: DatabaseService = Depends(get_database_service)
):
    object_id = validate_id(person_id)
    fields = validate_update_payload(await read_json_body(request))
    person = await database.replace_person(object_id, fields)
    return person_to_response(person)


@app.delete("/api/persons/{person_id}", status_code=204)
async def delete_person(
    person_id: str = Path(..., description="Person ID"),
    database: DatabaseService = Depends(get_database_service)
):
    await database.delete_person(validate_id(person_id))
    return Response(status_code=204)


@app.post("/api/users", response_model=UserResponse, status_code=201)
async def create_user(request: Request, database: DatabaseService = Depends(get_database_service)):
    fields = validate_user_payload(await read_json_body(request))
    user = await auth_service.create_user(fields["username"], fields["name"], fields["password"], database)
    return user_to_response(user)


@app.get("/api/users", response_model=List[UserResponse])
async def list_users(database: DatabaseService = Depends(get_database_service)):
    users = await database.list_users()
    return [user_to_response(u) for u in users]


@app.post("/api/login", response_model=LoginResponse)
async def login(request: Request, database: DatabaseService = Depends(get_database_service)):
    credentials = validate_login_payload(await read_json_body(request))
    user = await auth_service.authenticate_user(credentials["username"], credentials["password"], database)
    if not user:
        raise Unauthorized("invalid username or password")

    token = auth_service.create_token_for_user(user)
    return LoginResponse(token=token, username=user["username"], name=user.get("name"))


if __name__ == "__main__":
    uvicorn.run("main:app", host=Config.HOST, port=Config.PORT, reload=Config.DEBUG)
