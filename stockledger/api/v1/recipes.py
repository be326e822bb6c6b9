from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from stockledger.database import get_db, unit_of_work
from stockledger.dependencies import get_tenant_context
from stockledger.schemas.recipe import RecipeCreate, RecipeResponse
from stockledger.services import recipe_costing
from stockledger.services.context import TenantContext

router = APIRouter()


def recipe_response(db: Session, tenant_id: int, item) -> RecipeResponse:
    response = RecipeResponse.model_validate(item)
    response.live_cost = recipe_costing.live_cost(db, tenant_id, item)
    return response


@router.get("/", response_model=List[RecipeResponse])
def get_recipes(
    include_inactive: bool = Query(False, description="Include deactivated recipes"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get all recipes with stored and live cost"""
    recipes = recipe_costing.list_recipes(db, ctx.tenant_id, include_inactive)
    return [recipe_response(db, ctx.tenant_id, recipe) for recipe in recipes]


@router.post("/", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
def create_recipe(
    data: RecipeCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Create recipe; cost is computed from the lines"""
    with unit_of_work(db):
        recipe = recipe_costing.save_recipe(
            db,
            ctx,
            data.name,
            [line.model_dump() for line in data.lines],
            instructions=data.instructions,
        )
        recipe_id = recipe.id

    return recipe_response(db, ctx.tenant_id, recipe_costing.get_recipe(db, ctx.tenant_id, recipe_id))


@router.get("/{recipe_id}", response_model=RecipeResponse)
def get_recipe_by_id(
    recipe_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get recipe by ID"""
    return recipe_response(db, ctx.tenant_id, recipe_costing.get_recipe(db, ctx.tenant_id, recipe_id))


@router.put("/{recipe_id}", response_model=RecipeResponse)
def update_recipe(
    recipe_id: int,
    data: RecipeCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Replace recipe name, instructions and lines; cost is recomputed"""
    with unit_of_work(db):
        recipe_costing.save_recipe(
            db,
            ctx,
            data.name,
            [line.model_dump() for line in data.lines],
            instructions=data.instructions,
            recipe_id=recipe_id,
        )

    return recipe_response(db, ctx.tenant_id, recipe_costing.get_recipe(db, ctx.tenant_id, recipe_id))
