import time

import jwt

IDENTITY_SECRET = "identity-provider-test-secret-0123456789"
SIGNING_KEY = "capability-token-test-signing-key-0123456789"


def bearer_headers(
    subject_id: str,
    *,
    email: str = "",
    role: str | None = None,
    expires_in: int = 3600,
    secret: str = IDENTITY_SECRET,
    audience: str = "authenticated",
    user_metadata: dict[str, object] | None = None,
) -> dict[str, str]:
    """Authorization header as the identity provider would issue it."""
    payload: dict[str, object] = {
        "sub": subject_id,
        "aud": audience,
        "exp": int(time.time()) + expires_in,
        "email": email,
    }
    if role is not None:
        payload["app_metadata"] = {"role": role}
    if user_metadata is not None:
        payload["user_metadata"] = user_metadata

    token = jwt.encode(payload, secret, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}
