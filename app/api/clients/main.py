from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import require_admin, require_staff
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.client_service import ClientService
from .models import Client, ClientCreate, ClientDeletion, ClientUpdate

router = APIRouter()


# --- Dependency Injectors ---
def get_client_service(session: Session = Depends(get_sync_session)) -> ClientService:
    return ClientService(session)


# --- Client Endpoints ---


@router.get("/clients", response_model=List[Client])
def api_get_all_clients(
    limit: Optional[int] = Query(None, ge=1, le=200),
    start_after: Optional[str] = Query(None, alias="startAfter"),
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.list_clients(limit=limit, start_after=start_after)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/clients/{client_id}", response_model=Client)
def api_get_client(
    client_id: str,
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.get_client(client_id)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/clients", response_model=Client, status_code=status.HTTP_201_CREATED)
def api_create_client(
    client: ClientCreate,
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.create_client(client.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/clients/{client_id}", response_model=Client)
def api_update_client(
    client_id: str,
    client_update: ClientUpdate,
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(require_staff),
):
    update_fields = client_update.model_dump(exclude_unset=True)
    try:
        return service.update_client(client_id, update_fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/clients/{client_id}", response_model=ClientDeletion)
def api_delete_client(
    client_id: str,
    request: Request,
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(require_admin),
):
    try:
        result = service.delete_client(client_id)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    log_action(
        "DELETE",
        "client",
        client_id,
        user=current_user,
        request=request,
        details={"deleted": result["deleted"], "cleanup_errors": len(result["cleanup_errors"])},
    )
    return result


@router.delete("/clients/by-uid/{uid}", response_model=ClientDeletion)
def api_delete_clients_by_uid(
    uid: str,
    request: Request,
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(require_admin),
):
    try:
        result = service.delete_by_uid(uid)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    log_action("DELETE", "client", uid, user=current_user, request=request, details=result)
    return result
