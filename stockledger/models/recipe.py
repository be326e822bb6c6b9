from sqlalchemy import Column, String, Boolean, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from stockledger.database import Base
from stockledger.models.base import TimestampMixin


class Recipe(Base, TimestampMixin):
    __tablename__ = "recipes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    instructions = Column(Text)
    # Σ(line.quantity × line.unit_cost), rewritten on every save
    cost = Column(Numeric(14, 4), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(100))

    # Relationships
    lines = relationship(
        "RecipeLine",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
    )


class RecipeLine(Base):
    __tablename__ = "recipe_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipe_id = Column(Integer, ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    tenant_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    # Captured at authoring time; the ingredient may be renamed later
    ingredient_id = Column(Integer, nullable=False)
    ingredient_name = Column(String(255), nullable=False)
    unit = Column(String(20), nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    unit_cost = Column(Numeric(14, 4), nullable=False, default=0)

    # Relationships
    recipe = relationship("Recipe", back_populates="lines")


class Subrecipe(Base, TimestampMixin):
    """Pre-costed preparation; stored cost only, not expanded at sale time."""

    __tablename__ = "subrecipes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    instructions = Column(Text)
    cost = Column(Numeric(14, 4), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(100))

    # Relationships
    lines = relationship(
        "SubrecipeLine",
        back_populates="subrecipe",
        cascade="all, delete-orphan",
        order_by="SubrecipeLine.position",
    )


class SubrecipeLine(Base):
    __tablename__ = "subrecipe_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subrecipe_id = Column(Integer, ForeignKey('subrecipes.id', ondelete='CASCADE'), nullable=False, index=True)
    tenant_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    ingredient_id = Column(Integer, nullable=False)
    ingredient_name = Column(String(255), nullable=False)
    unit = Column(String(20), nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    unit_cost = Column(Numeric(14, 4), nullable=False, default=0)

    # Relationships
    subrecipe = relationship("Subrecipe", back_populates="lines")
