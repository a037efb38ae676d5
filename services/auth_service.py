import time
from typing import Optional, Dict, Any
from passlib.context import CryptContext
import jwt
from bson import ObjectId
from bson.errors import InvalidId

import logging

from utils.config import Config

logger = logging.getLogger(__name__)

# Only used with DEBUG on; startup refuses a missing secret otherwise
JWT_SECRET = Config.JWT_SECRET_KEY or "dev-secret"
JWT_ALGO = Config.JWT_ALGORITHM
ACCESS_TOKEN_EXPIRE_MIN = Config.ACCESS_TOKEN_EXPIRE_MINUTES


class AuthService:
    def __init__(self, database_service=None):
        self.db = database_service
        self.pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def hash_password(self, password: str) -> str:
        return self.pwd.hash(password)

    def verify_password(self, plain: str, hashed: str) -> bool:
        try:
            return self.pwd.verify(plain, hashed)
        except ValueError:
            # Stored value is not a recognised hash
            return False

    def create_access_token(self, data: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
        to_encode = data.copy()
        expire = int(time.time()) + (expires_minutes or ACCESS_TOKEN_EXPIRE_MIN) * 60
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGO)

    def create_token_for_user(self, user: Dict[str, Any]) -> str:
        return self.create_access_token({"username": user["username"], "id": str(user["_id"])})

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Decode a bearer token; None when it is malformed, expired or not an access token."""
        try:
            payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
        except jwt.ExpiredSignatureError:
            logger.info("verify_token: token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.info(f"verify_token: invalid token: {e}")
            return None
        if payload.get("type") != "access" or not payload.get("id"):
            return None
        return payload

    async def resolve_user(self, token: str, database_service=None) -> Optional[Dict[str, Any]]:
        """Return the user a token was issued to, if that user still exists."""
        payload = self.verify_token(token)
        if not payload:
            return None
        try:
            user_id = ObjectId(payload["id"])
        except (InvalidId, TypeError):
            return None
        user = await (database_service or self.db).get_user_by_id(user_id)
        if not user:
            logger.info(f"resolve_user: token refers to unknown user id={user_id}")
        return user

    async def create_user(self, username: str, name: Optional[str], password: str, database_service=None) -> Dict[str, Any]:
        user = {
            "username": username,
            "name": name,
            "password_hash": self.hash_password(password),
            "created_at": int(time.time())
        }
        return await (database_service or self.db).create_user(user)

    async def authenticate_user(self, username: str, password: str, database_service=None) -> Optional[Dict[str, Any]]:
        user = await (database_service or self.db).get_user_by_username(username)
        if not user:
            logger.info(f"authenticate_user: no user record found for username={username}")
            return None

        stored = user.get('password_hash')
        if not stored:
            logger.info(f"authenticate_user: user found but no password hash stored for username={username}")
            return None

        if self.verify_password(password, stored):
            logger.info(f"authenticate_user: successful login for username={username}")
            return user
        logger.info(f"authenticate_user: password mismatch for username={username}")
        return None


# global instance; main wires the database service in at startup
auth_service = AuthService()
