# auth_service/app.py - HTTP surface for auth, settings and inventory
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from loguru import logger
from pydantic import BaseModel, Field

from alert_engine.notifier import AlertNotifier
from config import AppConfig
from inventory.repository import InventoryRepository
from inventory.service import InventoryService
from logging_setup import setup_logging

from .controller import AuthSession, AuthSessionController, AuthState, PromptResult, RejectionReason
from .credential_store import CredentialStore
from .database import init_db, make_session_factory
from .errors import InvalidInput, InvalidStateError, NotFound, StorageFailure
from .settings_store import SettingsStore
from .sms_gateway import SmsGateway


# --- Pydantic Schemas ---
class RegisterData(BaseModel):
    email: str = ""
    password: str = ""
    confirm_password: str = ""
    phone_number: str = ""


class LoginData(BaseModel):
    email: str = ""
    password: str = ""


class VerifyData(BaseModel):
    challenge_id: str
    code: str = ""
    cancel: bool = False


class LoginResponse(BaseModel):
    status: str
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    challenge_id: Optional[str] = None
    message: str = ""


class MessageResponse(BaseModel):
    msg: str


class SettingsData(BaseModel):
    sms_enabled: bool
    two_factor_enabled: bool
    minimum_threshold: int
    notify_at_zero: bool


class SettingsUpdate(BaseModel):
    sms_enabled: Optional[bool] = None
    two_factor_enabled: Optional[bool] = None
    minimum_threshold: Optional[int] = None
    notify_at_zero: Optional[bool] = None


class ItemData(BaseModel):
    name: str
    quantity: int = Field(ge=0)


class ItemResponse(BaseModel):
    id: int
    name: str
    quantity: int
    alert: Optional[str] = None


# Rejection reason -> HTTP status
REJECTION_STATUS = {
    RejectionReason.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    RejectionReason.USER_EXISTS: status.HTTP_409_CONFLICT,
    RejectionReason.BAD_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.BAD_CODE: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.CANCELLED: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.STORAGE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass
class Services:
    credentials: CredentialStore
    settings: SettingsStore
    controller: AuthSessionController
    inventory: InventoryService
    # challenge_id -> login session waiting for its code
    pending: Dict[str, AuthSession]


def get_services(request: Request) -> Services:
    return request.app.state.services


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=AppConfig.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, AppConfig.AUTH_SECRET_KEY, algorithm=AppConfig.ALGORITHM)


def get_current_email(authorization: str = Header(None)) -> str:
    """The logged-in user, as carried by the bearer token."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )
    try:
        token = authorization.split(" ")[1]
        payload = jwt.decode(token, AppConfig.AUTH_SECRET_KEY, algorithms=[AppConfig.ALGORITHM])
    except (JWTError, IndexError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return email


def _reject(outcome):
    detail = {"reason": outcome.reason.value, "message": outcome.message}
    if outcome.problem is not None:
        detail["problem"] = outcome.problem.value
    raise HTTPException(status_code=REJECTION_STATUS[outcome.reason], detail=detail)


def _authenticated(outcome) -> LoginResponse:
    return LoginResponse(
        status=outcome.state.value,
        access_token=create_access_token({"sub": outcome.email}),
        token_type="bearer",
    )


# ------------------------------------------------------------------
# --- ROUTES DEFINITIONS ---
# ------------------------------------------------------------------
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
settings_router = APIRouter(prefix="/settings", tags=["Settings"])
inventory_router = APIRouter(prefix="/inventory", tags=["Inventory"])


@auth_router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register_user(data: RegisterData, services: Services = Depends(get_services)):
    session = services.controller.new_session()
    outcome = await session.register(data.email, data.password, data.confirm_password, data.phone_number)
    if not outcome.ok:
        _reject(outcome)
    return {"msg": outcome.message}


def _hold_pending(services: Services, session: AuthSession) -> None:
    """Keep at most one waiting challenge per email; a newer login replaces the older one."""
    for challenge_id, other in list(services.pending.items()):
        if other.email in (None, session.email) or other.expired:
            other.discard()
            del services.pending[challenge_id]
    services.pending[session.challenge_id] = session


@auth_router.post("/login", response_model=LoginResponse)
async def login(data: LoginData, services: Services = Depends(get_services)):
    sms_enabled = False
    if data.email:
        policy = await services.controller.run(services.settings.get_policy, data.email)
        sms_enabled = policy.sms_enabled

    session = services.controller.new_session()
    outcome = await session.login(data.email, data.password, sms_enabled=sms_enabled)
    if outcome.state == AuthState.AWAITING_CODE:
        _hold_pending(services, session)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=LoginResponse(
                status=outcome.state.value,
                challenge_id=outcome.challenge_id,
                message=outcome.message,
            ).model_dump(),
        )
    if outcome.state != AuthState.AUTHENTICATED:
        _reject(outcome)
    return _authenticated(outcome)


@auth_router.post("/verify", response_model=LoginResponse)
async def verify_code(data: VerifyData, services: Services = Depends(get_services)):
    session = services.pending.get(data.challenge_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"reason": RejectionReason.BAD_CODE.value, "message": "Unknown or used verification code"},
        )

    prompt = PromptResult.cancelled() if data.cancel else PromptResult.entered(data.code)
    outcome = await session.submit_code(prompt)
    if outcome.state != AuthState.AWAITING_CODE:
        services.pending.pop(data.challenge_id, None)
    if outcome.state == AuthState.AWAITING_CODE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"reason": RejectionReason.BAD_CODE.value, "message": outcome.message},
        )
    if outcome.state != AuthState.AUTHENTICATED:
        _reject(outcome)
    return _authenticated(outcome)


def _settings_view(services, email) -> SettingsData:
    policy = services.settings.get_policy(email)
    return SettingsData(
        sms_enabled=policy.sms_enabled,
        two_factor_enabled=services.credentials.is_two_factor_enabled(email),
        minimum_threshold=policy.minimum_threshold,
        notify_at_zero=policy.notify_at_zero,
    )


@settings_router.get("", response_model=SettingsData)
def read_settings(email: str = Depends(get_current_email), services: Services = Depends(get_services)):
    return _settings_view(services, email)


@settings_router.put("", response_model=SettingsData)
def update_settings(
    data: SettingsUpdate,
    email: str = Depends(get_current_email),
    services: Services = Depends(get_services),
):
    services.settings.apply(
        email,
        sms_enabled=data.sms_enabled,
        two_factor_enabled=data.two_factor_enabled,
        notify_at_zero=data.notify_at_zero,
        minimum_threshold=data.minimum_threshold,
    )
    return _settings_view(services, email)


def _item_response(change=None, item=None):
    if change is not None:
        alert = change.decision.value if change.fires else None
        return ItemResponse(**change.item, alert=alert)
    return ItemResponse(**item)


@inventory_router.get("", response_model=List[ItemResponse])
def list_items(
    sort: Optional[str] = None,
    email: str = Depends(get_current_email),
    services: Services = Depends(get_services),
):
    return [ItemResponse(**item) for item in services.inventory.repository.list_items(email, sort_by=sort)]


@inventory_router.post("", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
def add_item(data: ItemData, email: str = Depends(get_current_email), services: Services = Depends(get_services)):
    item = services.inventory.repository.add_item(email, data.name, data.quantity)
    return _item_response(item=item)


@inventory_router.put("/{item_id}", response_model=ItemResponse)
def update_item(
    item_id: int,
    data: ItemData,
    background_tasks: BackgroundTasks,
    email: str = Depends(get_current_email),
    services: Services = Depends(get_services),
):
    change = services.inventory.update(email, item_id, data.name, data.quantity)
    background_tasks.add_task(services.inventory.notify, email, change)
    return _item_response(change=change)


@inventory_router.delete("/{item_id}", response_model=MessageResponse)
def delete_item(item_id: int, email: str = Depends(get_current_email), services: Services = Depends(get_services)):
    services.inventory.repository.delete_item(email, item_id)
    return {"msg": "Item deleted successfully"}


@inventory_router.post("/{item_id}/increment", response_model=ItemResponse)
def increment_item(
    item_id: int,
    background_tasks: BackgroundTasks,
    email: str = Depends(get_current_email),
    services: Services = Depends(get_services),
):
    change = services.inventory.increment(email, item_id)
    background_tasks.add_task(services.inventory.notify, email, change)
    return _item_response(change=change)


@inventory_router.post("/{item_id}/decrement", response_model=ItemResponse)
def decrement_item(
    item_id: int,
    background_tasks: BackgroundTasks,
    email: str = Depends(get_current_email),
    services: Services = Depends(get_services),
):
    change = services.inventory.decrement(email, item_id)
    background_tasks.add_task(services.inventory.notify, email, change)
    return _item_response(change=change)


# ------------------------------------------------------------------
# --- APPLICATION SETUP ---
# ------------------------------------------------------------------
def _install_error_handlers(app: FastAPI):
    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": {"reason": exc.reason, "message": str(exc)}},
        )

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(InvalidStateError)
    async def invalid_state_handler(request: Request, exc: InvalidStateError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(StorageFailure)
    async def storage_failure_handler(request: Request, exc: StorageFailure):
        # detail is logged where it was raised; never echoed to the client
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Something went wrong, please try again"},
        )


def create_app(session_factory=None, gateway=None) -> FastAPI:
    setup_logging()
    if not AppConfig.AUTH_SECRET_KEY:
        raise RuntimeError("AUTH_SECRET_KEY is not set. Please configure it in the environment.")

    session_factory = session_factory or make_session_factory()
    init_db(session_factory)
    gateway = gateway or SmsGateway()

    credentials = CredentialStore(session_factory)
    settings = SettingsStore(session_factory)
    notifier = AlertNotifier(gateway, credentials.get_phone_number)
    services = Services(
        credentials=credentials,
        settings=settings,
        controller=AuthSessionController(credentials, gateway),
        inventory=InventoryService(InventoryRepository(session_factory), settings, notifier),
        pending={},
    )

    app = FastAPI(title="Inventory Auth Service")
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(settings_router)
    app.include_router(inventory_router)

    @app.on_event("shutdown")
    def shutdown_event():
        services.controller.shutdown(wait=True)
        logger.info("Auth worker stopped.")

    logger.info("Inventory auth service ready.")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("auth_service.app:create_app", factory=True, host="127.0.0.1", port=8000, reload=True)
