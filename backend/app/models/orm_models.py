"""ORM Models for the RAB Estimator — SQLAlchemy 2.0"""
from datetime import datetime
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Float, DateTime, JSON,
    ForeignKey, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from app.db import Base


# ── CATALOG ───────────────────────────────────────────────────────────────────
class Category(Base):
    __tablename__ = "categories"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    job_types: Mapped[list["JobType"]] = relationship("JobType", back_populates="category")


class JobType(Base):
    __tablename__ = "job_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("categories.id"))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="m³")       # unit of job output
    calculator: Mapped[str] = mapped_column(String(50), default="volume")  # beam | footplate | area | volume | length
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    category: Mapped[Optional["Category"]] = relationship("Category", back_populates="job_types")
    materials: Mapped[list["JobTypeMaterial"]] = relationship("JobTypeMaterial", back_populates="job_type")
    labor: Mapped[list["JobTypeLabor"]] = relationship("JobTypeLabor", back_populates="job_type")


# ── MATERIALS ─────────────────────────────────────────────────────────────────
class Material(Base):
    __tablename__ = "materials"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    market_unit: Mapped[str] = mapped_column(String(50), nullable=False)
    market_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    base_unit: Mapped[str] = mapped_column(String(50), nullable=False)
    conversion_factor: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    conversion_description: Mapped[Optional[str]] = mapped_column(Text)
    supplier: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    __table_args__ = (Index("ix_materials_name", "name"),)


class MaterialConversionRule(Base):
    __tablename__ = "material_conversion_rules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_name: Mapped[str] = mapped_column(String(255), nullable=False)
    material_pattern: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_pattern: Mapped[str] = mapped_column(String(100), nullable=False)
    conversion_factor: Mapped[float] = mapped_column(Float, nullable=False)
    base_unit: Mapped[str] = mapped_column(String(50), nullable=False)
    conversion_description: Mapped[Optional[str]] = mapped_column(Text)
    material_type: Mapped[Optional[str]] = mapped_column(String(100))
    job_category_pattern: Mapped[Optional[str]] = mapped_column(String(255))
    conversion_data: Mapped[Optional[dict]] = mapped_column(JSON)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    __table_args__ = (Index("ix_conversion_rules_priority", "priority"),)


# ── JOB TYPE ASSIGNMENTS ──────────────────────────────────────────────────────
class JobTypeMaterial(Base):
    __tablename__ = "job_type_materials"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("job_types.id"), nullable=False)
    material_id: Mapped[int] = mapped_column(Integer, ForeignKey("materials.id"), nullable=False)
    sub_work: Mapped[str] = mapped_column(String(100), default="Utama")
    quantity_per_unit: Mapped[float] = mapped_column(Float, nullable=False)  # in market units
    is_primary: Mapped[bool] = mapped_column(Boolean, default=True)
    # NULL → use the material's own conversion
    conversion_factor: Mapped[Optional[float]] = mapped_column(Float)
    base_unit: Mapped[Optional[str]] = mapped_column(String(50))
    conversion_description: Mapped[Optional[str]] = mapped_column(Text)
    job_type: Mapped["JobType"] = relationship("JobType", back_populates="materials")
    material: Mapped["Material"] = relationship("Material")


class JobTypeLabor(Base):
    __tablename__ = "job_type_labor"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("job_types.id"), nullable=False)
    sub_work: Mapped[str] = mapped_column(String(100), default="Utama")
    tukang: Mapped[int] = mapped_column(Integer, default=1)
    pekerja: Mapped[int] = mapped_column(Integer, default=1)
    ratio: Mapped[str] = mapped_column(String(20), default="1:1")
    # NULL → configured default daily wage
    rate_tukang: Mapped[Optional[float]] = mapped_column(Float)
    rate_pekerja: Mapped[Optional[float]] = mapped_column(Float)
    productivity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    job_type: Mapped["JobType"] = relationship("JobType", back_populates="labor")


# ── CALCULATIONS ──────────────────────────────────────────────────────────────
class Calculation(Base):
    __tablename__ = "calculations"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("job_types.id"))
    project_name: Mapped[Optional[str]] = mapped_column(String(255))
    shape: Mapped[Optional[str]] = mapped_column(String(50))
    concrete_quality: Mapped[Optional[str]] = mapped_column(String(10))
    waste_factor: Mapped[float] = mapped_column(Float, default=0.0)
    profit_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    material_cost: Mapped[float] = mapped_column(Float, default=0.0)
    labor_cost: Mapped[float] = mapped_column(Float, default=0.0)
    hpp: Mapped[float] = mapped_column(Float, default=0.0)
    rab: Mapped[float] = mapped_column(Float, default=0.0)
    profit: Mapped[float] = mapped_column(Float, default=0.0)
    estimated_days: Mapped[float] = mapped_column(Float, default=0.0)
    calculation_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    # load created_at on insert so a saved calculation is readable in the same session
    __mapper_args__ = {"eager_defaults": True}
