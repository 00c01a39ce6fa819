"""Authentication routes and the identity dependency used by other routers."""

import json
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
import redis.asyncio as redis
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import schemas, crud
from .database import get_db
from .models import User
from .core import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
router = APIRouter(prefix="/auth", tags=["auth"])


@dataclass
class CachedUser:
    """Serializable identity of an authenticated user stored in cache."""

    id: int
    name: str
    email: str
    phone: str | None = None
    location: str | None = None
    hashed_password: str | None = None

    @classmethod
    def from_model(cls, user: User) -> "CachedUser":
        """
        Create a CachedUser instance from a User ORM model.

        Args:
            user (User): SQLAlchemy User model.

        Returns:
            CachedUser: Serializable cached user representation.
        """
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            location=user.location,
            hashed_password=getattr(user, "hashed_password", None),
        )

    def to_model(self) -> User:
        """
        Convert cached user data back into a detached User model.

        Only identity fields are restored; counters and notification
        preferences must be read from the database.

        Returns:
            User: SQLAlchemy User instance populated from cache.
        """
        return User(
            id=self.id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            location=self.location,
            hashed_password=self.hashed_password or "",
        )

    def to_json(self) -> str:
        return json.dumps(self.__dict__)

    @classmethod
    def from_json(cls, raw: str) -> "CachedUser":
        data: dict[str, Any] = json.loads(raw)
        return cls(**data)


class MemoryCache:
    """In-memory cache used when Redis is unavailable, with per-key expiry."""

    def __init__(self, clock=time.monotonic):
        self.store: dict[str, tuple[str, float | None]] = {}
        self.clock = clock

    async def get(self, key: str) -> str | None:
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self.store[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None):
        """
        Store a value in in-memory cache.

        Expired entries are purged on every write so the store stays
        bounded by the number of live keys.

        Args:
            key (str): Cache key.
            value (str): Value to store.
            ex (int | None): Expiration time in seconds.
        """
        now = self.clock()
        self.store = {
            k: entry
            for k, entry in self.store.items()
            if entry[1] is None or entry[1] > now
        }
        self.store[key] = (value, now + ex if ex else None)

    async def delete(self, key: str):
        self.store.pop(key, None)


_cache_client: Any | None = None


async def get_cache_client():
    """
    Return a Redis client or an in-memory fallback cache.

    Returns:
        Redis | MemoryCache: Cache backend instance.
    """
    global _cache_client
    if _cache_client is not None:
        return _cache_client
    settings = get_settings()
    try:
        client = redis.from_url(
            settings.REDIS_URL, encoding="utf-8", decode_responses=True
        )
        await client.ping()
        _cache_client = client
    except Exception:
        _cache_client = MemoryCache()
    return _cache_client


async def cache_user(user: User, expire_minutes: int | None = None):
    """
    Store user identity in cache to reduce database access.

    Args:
        user (User): User ORM model.
        expire_minutes (int | None): Cache expiration time.
    """
    client = await get_cache_client()
    settings = get_settings()
    expires = expire_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    await client.set(
        f"user:{user.email}", CachedUser.from_model(user).to_json(), ex=expires * 60
    )


async def get_cached_user(email: str) -> User | None:
    """
    Retrieve user from cache if available.

    Args:
        email (str): User email.

    Returns:
        User | None: Cached user or None.
    """
    client = await get_cache_client()
    cached = await client.get(f"user:{email}")
    if cached:
        return CachedUser.from_json(cached).to_model()
    return None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a password hash using the configured context."""
    return pwd_context.hash(password)


def create_access_token(
    data: dict, expires_delta: timedelta | None = None, scope: str = "access"
) -> str:
    """Create a signed JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "scope": scope})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token with a longer lifetime."""
    settings = get_settings()
    return create_access_token(
        data,
        expires_delta=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
        scope="refresh",
    )


def issue_tokens(user: User) -> schemas.Token:
    return schemas.Token(
        access_token=create_access_token({"sub": user.email}),
        refresh_token=create_refresh_token({"sub": user.email}),
    )


async def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> User:
    """Dependency that returns authenticated user from JWT token with caching."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token, get_settings().SECRET_KEY, algorithms=[get_settings().ALGORITHM]
        )
        email: str | None = payload.get("sub")
        scope = payload.get("scope", "access")
        if email is None or scope != "access":
            raise credentials_exception
        token_data = schemas.TokenData(sub=email, scope=scope)
    except JWTError:
        raise credentials_exception
    cached_user = await get_cached_user(token_data.sub)
    if cached_user:
        return cached_user
    user = crud.get_user_by_email(db, email=token_data.sub)
    if user is None:
        raise credentials_exception
    await cache_user(user)
    return user


@router.post(
    "/signup", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED
)
def signup(user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    """Register a new user with empty stats and all notifications enabled."""

    hashed_password = get_password_hash(user_in.password)
    return crud.create_user(db, user_in, hashed_password)


@router.post("/login", response_model=schemas.Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)
):
    """Authenticate user and return access/refresh token pair."""

    user = crud.get_user_by_email(db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )
    await cache_user(user)
    return issue_tokens(user)


@router.post("/refresh", response_model=schemas.Token)
async def refresh_tokens(payload: schemas.TokenRefresh, db: Session = Depends(get_db)):
    """Issue a new pair of tokens based on a refresh token."""

    try:
        token_data = jwt.decode(
            payload.refresh_token,
            get_settings().SECRET_KEY,
            algorithms=[get_settings().ALGORITHM],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )

    if token_data.get("scope") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token scope"
        )
    user = crud.get_user_by_email(db, token_data.get("sub"))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )
    await cache_user(user)
    return issue_tokens(user)
