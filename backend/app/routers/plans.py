from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.repositories.plan_repository import PlanRepository
from app.schemas.onboarding import PriceBreakdown
from app.schemas.plan import PlanCreate, PlanQuoteRequest, PlanResponse
from app.services.plan_assignment import PlanAssignmentError, PlanAssignmentService

router = APIRouter()


@router.get(
    "/",
    response_model=list[PlanResponse],
    summary="List plans",
)
async def list_plans(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[PlanResponse]:
    """List catalog plans in display order."""
    repo = PlanRepository(db)
    response.headers["X-Total-Count"] = str(repo.count())
    return [repo.build_response(plan) for plan in repo.get_all(skip=skip, limit=limit)]


@router.get(
    "/{plan_id}",
    response_model=PlanResponse,
    summary="Get plan",
    responses={404: {"description": "Plan not found"}},
)
async def get_plan(
    plan_id: UUID,
    db: Session = Depends(get_db),
) -> PlanResponse:
    """Get a plan with its features, add-ons and volume discount tiers."""
    repo = PlanRepository(db)
    plan = repo.get_by_id(plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return repo.build_response(plan)


@router.post(
    "/",
    response_model=PlanResponse,
    status_code=201,
    summary="Create plan",
    responses={
        409: {"description": "Plan with this code already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_plan(
    data: PlanCreate,
    db: Session = Depends(get_db),
) -> PlanResponse:
    """Add a plan to the catalog."""
    repo = PlanRepository(db)
    if repo.code_exists(data.code):
        raise HTTPException(status_code=409, detail="Plan with this code already exists")
    plan = repo.create(data)
    return repo.build_response(plan)


@router.post(
    "/{plan_id}/quote",
    response_model=PriceBreakdown,
    summary="Price a selection",
    responses={
        404: {"description": "Plan not found"},
        422: {"description": "Invalid branch count or add-on selection"},
    },
)
async def quote_plan(
    plan_id: UUID,
    data: PlanQuoteRequest,
    db: Session = Depends(get_db),
) -> PriceBreakdown:
    """Compute the price breakdown for a billing cycle, branch count and add-on selection."""
    plan = PlanRepository(db).get_by_id(plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    try:
        return PlanAssignmentService(db).quote(
            plan, data.billing_cycle, data.branch_count, data.selected_add_ons
        )
    except PlanAssignmentError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
