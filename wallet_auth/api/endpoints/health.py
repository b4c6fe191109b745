from fastapi import APIRouter, status

from wallet_auth.schemas.my_base_model import CustomBaseModel

router = APIRouter()


class HealthCheck(CustomBaseModel):
    status: str = "ok"


@router.get("/health", tags=["Health"], response_model=HealthCheck, status_code=status.HTTP_200_OK)
def get_health() -> HealthCheck:
    return HealthCheck(status="ok")
