# school_portal/core/security.py - Authentication utilities (JWT, password hashing)
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Union
import re
import secrets

import jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status

from school_portal.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
    bcrypt__ident="2b"
)

RESERVED_CLAIMS = {"sub", "iat", "exp", "iss", "aud", "type", "jti"}


class SecurityError(Exception):
    """Raised when a token or password cannot be produced"""
    pass


class TokenManager:
    """Manages JWT token creation, validation, and refresh"""

    def __init__(self):
        self.secret_key = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.audience = settings.JWT_AUDIENCE
        self.access_token_expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        self.refresh_token_expire_days = settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS

    def _encode(self, subject: Union[str, Any], token_type: str, expire: datetime,
                additional_claims: Optional[Dict[str, Any]] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject),
            "iat": now,
            "exp": expire,
            "iss": self.issuer,
            "aud": self.audience,
            "type": token_type,
            "jti": secrets.token_hex(16),
        }
        if additional_claims:
            for claim in additional_claims:
                if claim in RESERVED_CLAIMS:
                    raise SecurityError(f"Cannot override reserved JWT claim: {claim}")
            payload.update(additional_claims)

        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SecurityError(f"Failed to create {token_type} token: {e}")

    def create_access_token(
        self,
        subject: Union[str, Any],
        expires_delta: Optional[timedelta] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Create a JWT access token.

        Args:
            subject: Token subject (the user ID)
            expires_delta: Custom expiration time
            additional_claims: Extra claims such as email, school_id, role

        Returns:
            Encoded JWT token string
        """
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        )
        return self._encode(subject, "access", expire, additional_claims)

    def create_refresh_token(
        self,
        subject: Union[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create a JWT refresh token with longer expiration."""
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(days=self.refresh_token_expire_days)
        )
        return self._encode(subject, "refresh", expire)

    def decode_token(self, token: str, expected_type: str = "access") -> Dict[str, Any]:
        """
        Decode and validate a JWT token.

        Args:
            token: JWT token string
            expected_type: Expected token type ("access" or "refresh")

        Returns:
            Dictionary containing token claims

        Raises:
            HTTPException: 401 if token is invalid, expired or of the wrong type
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except jwt.InvalidTokenError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {e}",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != expected_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {expected_type}",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return payload


class PasswordManager:
    """Manages password hashing, verification, and strength validation"""

    @staticmethod
    def hash_password(password: str) -> str:
        if not password:
            raise SecurityError("Password cannot be empty")
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash; malformed hashes never match."""
        if not plain_password or not hashed_password:
            return False
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            return False

    @staticmethod
    def validate_password_strength(password: str) -> Dict[str, Any]:
        """
        Validate password strength with detailed feedback.

        Returns:
            Dictionary with "valid" and a list of "feedback" messages
        """
        requirements = {
            "min_length": len(password or "") >= 8,
            "has_letter": bool(re.search(r'[A-Za-z]', password or "")),
            "has_digit": bool(re.search(r'\d', password or "")),
        }
        feedback = []
        if not requirements["min_length"]:
            feedback.append("Password must be at least 8 characters long")
        if not requirements["has_letter"]:
            feedback.append("Password must contain at least one letter")
        if not requirements["has_digit"]:
            feedback.append("Password must contain at least one digit")

        return {
            "valid": all(requirements.values()),
            "feedback": feedback or ["Password meets all requirements"],
            "requirements": requirements,
        }


token_manager = TokenManager()
password_manager = PasswordManager()


def decode_token(token: str) -> Dict[str, Any]:
    """Decode an access token (convenience function)"""
    return token_manager.decode_token(token)


def hash_password(password: str) -> str:
    return password_manager.hash_password(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return password_manager.verify_password(plain_password, hashed_password)


__all__ = [
    "TokenManager", "PasswordManager", "SecurityError",
    "token_manager", "password_manager",
    "decode_token", "hash_password", "verify_password",
]
