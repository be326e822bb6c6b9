from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from stockledger.api.v1.recipes import recipe_response
from stockledger.database import get_db, unit_of_work
from stockledger.dependencies import get_tenant_context
from stockledger.schemas.recipe import RecipeCreate, RecipeResponse
from stockledger.services import recipe_costing
from stockledger.services.context import TenantContext

router = APIRouter()


@router.get("/", response_model=List[RecipeResponse])
def get_subrecipes(
    include_inactive: bool = Query(False, description="Include deactivated subrecipes"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get all subrecipes"""
    subrecipes = recipe_costing.list_subrecipes(db, ctx.tenant_id, include_inactive)
    return [recipe_response(db, ctx.tenant_id, item) for item in subrecipes]


@router.post("/", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
def create_subrecipe(
    data: RecipeCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    with unit_of_work(db):
        subrecipe = recipe_costing.save_subrecipe(
            db,
            ctx,
            data.name,
            [line.model_dump() for line in data.lines],
            instructions=data.instructions,
        )
        subrecipe_id = subrecipe.id

    return recipe_response(db, ctx.tenant_id, recipe_costing.get_subrecipe(db, ctx.tenant_id, subrecipe_id))


@router.get("/{subrecipe_id}", response_model=RecipeResponse)
def get_subrecipe_by_id(
    subrecipe_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return recipe_response(db, ctx.tenant_id, recipe_costing.get_subrecipe(db, ctx.tenant_id, subrecipe_id))


@router.put("/{subrecipe_id}", response_model=RecipeResponse)
def update_subrecipe(
    subrecipe_id: int,
    data: RecipeCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Replace subrecipe lines; cost is recomputed"""
    with unit_of_work(db):
        recipe_costing.save_subrecipe(
            db,
            ctx,
            data.name,
            [line.model_dump() for line in data.lines],
            instructions=data.instructions,
            subrecipe_id=subrecipe_id,
        )

    return recipe_response(db, ctx.tenant_id, recipe_costing.get_subrecipe(db, ctx.tenant_id, subrecipe_id))
