"""Admin user endpoints."""

from fastapi import APIRouter, Depends

from costwatch.core.cost_analytics import user_cost_profile
from costwatch.db.users_repository import get_user_by_id, upsert_user
from costwatch.web.dependencies import require_admin_key
from costwatch.web.schemas import UserCostProfileResponse, UserResponse, UserUpsert

router = APIRouter(
    prefix="/api/admin/users",
    tags=["users"],
    dependencies=[Depends(require_admin_key)],
)


@router.put("/{user_id}", response_model=UserResponse)
def put_user(user_id: str, request: UserUpsert) -> UserResponse:
    """Create or update the name and email shown in alerts and reports."""
    upsert_user(
        user_id,
        first_name=request.first_name.strip(),
        last_name=request.last_name.strip(),
        email=request.email.strip(),
    )
    user = get_user_by_id(user_id)
    return UserResponse(
        user_id=user.user_id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        full_name=user.full_name,
        created_at=user.created_at,
    )


@router.get("/{user_id}/costs", response_model=UserCostProfileResponse)
def get_user_costs(user_id: str) -> UserCostProfileResponse:
    """Cost profile of one user."""
    return UserCostProfileResponse(**user_cost_profile(user_id))
