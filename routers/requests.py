from typing import List, Optional

from fastapi import APIRouter, HTTPException
from sqlmodel import select

from db import SessionDep
from errors import RejectionReason, ValidationRejection
from models import FoodRequest
from schemas import FoodRequestCreate
from .auth import OptionalIdentityDep

router = APIRouter(tags=["requests"])


@router.post("/", response_model=FoodRequest)
def create_request(request_data: FoodRequestCreate, session: SessionDep, current: OptionalIdentityDep):
    """
    Post a custom food request when nothing suitable is listed.
    Guests may post too.
    """
    required = (request_data.food_item, request_data.quantity, request_data.contact_info)
    if not all(value and value.strip() for value in required):
        raise ValidationRejection(RejectionReason.MISSING_REQUIRED_FIELDS)

    new_request = FoodRequest(
        requester_id=current["user_id"] if current else "guest",
        requester_name=current.get("name", "Anonymous") if current else "Anonymous",
        is_guest=current is None or bool(current.get("is_guest")),
        food_item=request_data.food_item.strip(),
        quantity=request_data.quantity.strip(),
        description=request_data.description,
        urgency=request_data.urgency,
        location=request_data.location,
        contact_info=request_data.contact_info.strip(),
        status="open",
    )
    session.add(new_request)
    session.commit()
    session.refresh(new_request)
    return new_request


@router.get("/", response_model=List[FoodRequest])
def list_requests(
    session: SessionDep,
    urgency: Optional[str] = None,
    status: Optional[str] = "open",
):
    query = select(FoodRequest)
    if urgency is not None:
        query = query.where(FoodRequest.urgency == urgency)
    if status is not None:
        query = query.where(FoodRequest.status == status)
    query = query.order_by(FoodRequest.created_at.desc(), FoodRequest.id.desc())
    return session.exec(query).all()


@router.get("/{request_id}", response_model=FoodRequest)
def get_request(request_id: int, session: SessionDep):
    req = session.get(FoodRequest, request_id)
    if req is None:
        raise HTTPException(status_code=404, detail="Request not found")
    return req
