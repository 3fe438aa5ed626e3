from datetime import datetime
from typing import Any, Dict, List

from .exceptions import SubjectNotFoundError
from .stores import AttributeStore, UserStore
from .time_window import as_aware, time_attributes


def _as_id(value: Any) -> Any:
    return str(value) if value is not None else None


class AttributeResolver:
    """
    Builds the subject attribute bag for one evaluation.

    Layers, later ones overriding earlier ones:
      1. identity fields from the user record
      2. current_time / current_hour / current_day
      3. departments, primary_department and roles from department roles
      4. stored user attributes that are active and not expired

    Nothing is cached: every call reads the stores again.
    """

    def __init__(self, user_store: UserStore, attribute_store: AttributeStore):
        self.user_store = user_store
        self.attribute_store = attribute_store

    async def resolve(self, user_id: str, now: datetime) -> Dict[str, Any]:
        user = await self.user_store.get_user(user_id)
        if not user:
            raise SubjectNotFoundError(user_id)

        department_roles: List[Dict[str, Any]] = user.get("department_roles") or []

        attributes: Dict[str, Any] = {
            "user_id": str(user_id),
            "username": user.get("username"),
            "email": user.get("email"),
            "is_super_admin": bool(user.get("is_super_admin", False)),
            "is_active": bool(user.get("is_active", True)),
        }
        attributes.update(time_attributes(now))
        attributes.update(
            {
                "departments": [
                    _as_id(dr.get("department_id"))
                    for dr in department_roles
                    if dr.get("department_id") is not None
                ],
                "primary_department": _as_id(user.get("primary_department")),
                "roles": [dr.get("role") for dr in department_roles if dr.get("role")],
            }
        )

        stored = await self.attribute_store.find_active_user_attributes(user_id, now)
        for attr in stored:
            if not attr.is_active:
                continue
            if attr.valid_until and as_aware(attr.valid_until) < now:
                continue
            attributes[attr.attribute_name] = attr.attribute_value

        return attributes
