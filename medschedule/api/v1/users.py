from fastapi import APIRouter, Depends

from ...api.deps import get_current_identity, get_directory_service
from ...core.security import Identity
from ...services.directory_service import DirectoryService

router = APIRouter(prefix="/users", tags=["Users"])

@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    service: DirectoryService = Depends(get_directory_service)
):
    """Delete an account (admin, or the account owner)."""
    deleted = service.delete_user(identity, user_id)
    return {
        "message": "User account deleted successfully",
        "deleted_user": {"id": deleted.id, "name": deleted.name}
    }
