"""User CRUD - admin management of accounts."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter

from taskhub.api.deps import AdminOnly, get_password_hash
from taskhub.errors import ConflictError, NotFoundError
from taskhub.models.user import User, UserCreate, UserRole, UserUpdate
from taskhub.services.ids import parse_object_id

router = APIRouter()


def serialize_user(u: User) -> dict:
    return {
        "id": str(u.id),
        "email": u.email,
        "role": u.role,
        "full_name": u.full_name,
        "is_active": u.is_active,
    }


async def _get_user(user_id: str) -> User:
    u = await User.get(parse_object_id(user_id, "user"))
    if not u:
        raise NotFoundError("User not found")
    return u


async def _ensure_email_free(email: str, exclude_id=None) -> None:
    existing = await User.find_one(User.email == email)
    if existing and existing.id != exclude_id:
        raise ConflictError("Email already exists", fields=["email"])


@router.get("/")
async def list_users(admin: AdminOnly, role: Optional[UserRole] = None):
    query = {"role": role.value} if role else {}
    users = await User.find(query).to_list()
    return [serialize_user(u) for u in users]


@router.post("/", status_code=201)
async def create_user(data: UserCreate, admin: AdminOnly):
    email = data.email.lower()
    await _ensure_email_free(email)
    u = User(
        email=email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
        full_name=data.full_name,
    )
    await u.insert()
    return serialize_user(u)


@router.put("/{user_id}")
async def update_user(user_id: str, data: UserUpdate, admin: AdminOnly):
    u = await _get_user(user_id)
    update_data = data.model_dump(exclude_unset=True)
    if "email" in update_data and update_data["email"]:
        email = update_data.pop("email").lower()
        await _ensure_email_free(email, exclude_id=u.id)
        u.email = email
    password = update_data.pop("password", None)
    if password:
        u.hashed_password = get_password_hash(password)
    for key, value in update_data.items():
        if value is not None:
            setattr(u, key, value)
    u.updated_at = datetime.utcnow()
    await u.save()
    return serialize_user(u)


@router.patch("/{user_id}/toggle")
async def toggle_active(user_id: str, admin: AdminOnly):
    u = await _get_user(user_id)
    u.is_active = not u.is_active
    u.updated_at = datetime.utcnow()
    await u.save()
    return {"message": f"User is now {'active' if u.is_active else 'inactive'}", "is_active": u.is_active}


@router.delete("/{user_id}")
async def delete_user(user_id: str, admin: AdminOnly):
    u = await _get_user(user_id)
    await u.delete()
    return {"message": "User deleted successfully"}
