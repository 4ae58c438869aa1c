from fastapi import APIRouter, Depends, HTTPException, status

from poop_backend.database import UserStore, get_user_store
from poop_backend.errors import PoopError
from poop_backend.models.schemas import UserCreate
from poop_backend.services import users as user_service

router = APIRouter()


@router.get("/check")
async def check_user(address: str, users: UserStore = Depends(get_user_store)):
    try:
        return user_service.check_user(users, address)
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/check-username")
async def check_username(username: str, users: UserStore = Depends(get_user_store)):
    try:
        return user_service.check_username(users, username)
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/check-email")
async def check_email(email: str, users: UserStore = Depends(get_user_store)):
    try:
        return user_service.check_email(users, email)
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(user: UserCreate, users: UserStore = Depends(get_user_store)):
    try:
        return user_service.create_user(users, user.address, user.username, user.email)
    except PoopError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
