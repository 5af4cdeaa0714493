from fastapi import APIRouter, HTTPException, Request

from packbot.dependencies import get_repository
from packbot.models import CreateGearRequest, CreateUserRequest, GearItem, User

router = APIRouter(prefix="/users")


@router.post("", response_model=User, status_code=201)
async def create_user(request: Request, body: CreateUserRequest) -> User:
    repository = get_repository(request)
    if body.id and await repository.get_user(body.id) is not None:
        raise HTTPException(status_code=409, detail=f"User already exists: {body.id}")
    return await repository.create_user(body.id, full_name=body.full_name, location=body.location)


@router.post("/{user_id}/gear", response_model=GearItem, status_code=201)
async def add_gear(request: Request, user_id: str, body: CreateGearRequest) -> GearItem:
    repository = get_repository(request)
    if await repository.get_user(user_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown user: {user_id}")
    return await repository.add_gear(
        user_id,
        body.name,
        category=body.category,
        weight_grams=body.weight_grams,
        temp_rating=body.temp_rating,
        condition=body.condition,
    )
