"""Expired token pruning tests."""

from datetime import UTC, datetime, timedelta

from sqlalchemy import func
from sqlmodel import select

from fitquest.models import PasswordReset, RefreshToken, User, VerificationToken
from fitquest.services.auth import hash_token
from fitquest.services.maintenance import prune_expired_tokens


async def seed(session) -> None:
    now = datetime.now(UTC)
    past = now - timedelta(hours=1)
    future = now + timedelta(hours=1)

    expired_user = User(email="expired@example.com", password_hash="x")
    fresh_user = User(email="fresh@example.com", password_hash="x")
    used_user = User(email="used@example.com", password_hash="x")
    session.add_all([expired_user, fresh_user, used_user])
    await session.flush()

    session.add_all(
        [
            VerificationToken(user_id=expired_user.id, token_hash=hash_token("v1"), expires_at=past),
            VerificationToken(user_id=fresh_user.id, token_hash=hash_token("v2"), expires_at=future),
            PasswordReset(user_id=expired_user.id, token_hash=hash_token("p1"), expires_at=past),
            PasswordReset(
                user_id=used_user.id, token_hash=hash_token("p2"), expires_at=past, used=True
            ),
            RefreshToken(user_id=expired_user.id, token_hash=hash_token("r1"), expires_at=past),
            RefreshToken(user_id=fresh_user.id, token_hash=hash_token("r2"), expires_at=future),
        ]
    )
    await session.commit()


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def test_prune_deletes_expired_rows(session):
    await seed(session)

    counts = await prune_expired_tokens(session)

    assert counts == {"verification_tokens": 1, "refresh_tokens": 1, "password_resets": 1}
    assert await count(session, VerificationToken) == 1
    assert await count(session, RefreshToken) == 1
    # Used resets stay behind
    assert await count(session, PasswordReset) == 1


async def test_dry_run_only_counts(session):
    await seed(session)

    counts = await prune_expired_tokens(session, dry_run=True)

    assert counts == {"verification_tokens": 1, "refresh_tokens": 1, "password_resets": 1}
    assert await count(session, VerificationToken) == 2
    assert await count(session, RefreshToken) == 2
    assert await count(session, PasswordReset) == 2
