# app/api/users/main.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlmodel import Session

from ...core.audit import log_action
from ...core.constants import UserRole
from ...core.users import require_admin
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...schemas.user import UserCreate, UserRead, UserUpdate
from ...services.user_service import UserService

router = APIRouter()


class AdminUserCreate(UserCreate):
    role: UserRole = UserRole.CLIENT


class RoleUpdate(BaseModel):
    role: UserRole


def get_user_service(session: Session = Depends(get_sync_session)) -> UserService:
    return UserService(session)


@router.get("/users", response_model=List[UserRead])
def api_get_all_users(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_admin),
):
    return service.get_all_users(limit=limit, offset=offset)


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def api_create_user(
    user_data: AdminUserCreate,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_admin),
):
    try:
        return service.create_user(user_data, role=user_data.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/users/{user_id}", response_model=UserRead)
def api_update_user(
    user_id: str,
    user_data: UserUpdate,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_admin),
):
    try:
        return service.update_user(user_id, user_data)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/users/{user_id}/role", response_model=UserRead)
def api_set_user_role(
    user_id: str,
    payload: RoleUpdate,
    request: Request,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_admin),
):
    try:
        user = service.set_role(user_id, payload.role)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    log_action("UPDATE", "user_role", user_id, user=current_user, request=request,
               details={"role": payload.role.value})
    return user


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_delete_user(
    user_id: str,
    request: Request,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_admin),
):
    if user_id == str(current_user.id):
        raise HTTPException(status_code=403, detail="No puedes eliminar tu propia cuenta.")
    try:
        service.delete_user(user_id)
        log_action("DELETE", "user", user_id, user=current_user, request=request)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
