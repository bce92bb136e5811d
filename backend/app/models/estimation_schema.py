from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ─── Calculation inputs ──────────────────────────────────────────────────────

class WorkerAssignmentIn(BaseModel):
    """Crew for one sub-work. Rates default to the configured daily wages."""
    tukang: int = Field(0, description="Skilled workers on the crew")
    pekerja: int = Field(0, description="Laborers on the crew")
    ratio: str = Field("1:1", description="tukang:pekerja per team, e.g. 1:2")
    rate_tukang: Optional[float] = Field(None, description="IDR per day")
    rate_pekerja: Optional[float] = Field(None, description="IDR per day")


class MaterialLineIn(BaseModel):
    material_id: Optional[int] = None
    name: str
    market_unit: str = Field(..., description="Purchase unit, e.g. sak, truk, dus")
    market_price: float = Field(..., description="IDR per market unit")
    quantity_per_unit: float = Field(..., description="Market units per unit of job output")
    base_unit: Optional[str] = None
    conversion_factor: Optional[float] = None
    conversion_description: Optional[str] = None
    is_primary: bool = True


class SubWorkIn(BaseModel):
    name: str = Field(..., description="e.g. Beton, Bekisting, Besi")
    required_quantity: Optional[float] = None
    quantity_key: Optional[str] = Field(None, description="Key into the derived quantities, e.g. formwork_area")
    unit: Optional[str] = None
    productivity: Optional[float] = Field(None, description="Output units per team per day")
    grade_adjusted: Optional[bool] = None
    workers: WorkerAssignmentIn = Field(default_factory=WorkerAssignmentIn)
    materials: List[MaterialLineIn] = Field(default_factory=list)


class QuantityRequest(BaseModel):
    shape: str = Field(..., description="beam | footplate | area | volume | length, or area:circle etc.")
    dimensions: Dict[str, Any] = Field(default_factory=dict)


class CostRequest(BaseModel):
    sub_works: List[SubWorkIn]
    concrete_quality: Optional[str] = None
    waste_factor: Optional[float] = None
    profit_percentage: Optional[float] = None
    project_name: Optional[str] = None
    save: bool = False


class EstimateRequest(BaseModel):
    shape: str
    dimensions: Dict[str, Any] = Field(default_factory=dict)
    sub_works: Optional[List[SubWorkIn]] = None
    job_type_id: Optional[int] = Field(None, description="Load material and labor assignments of this job type")
    overrides: Optional[Dict[str, Dict[str, Any]]] = None
    concrete_quality: Optional[str] = None
    waste_factor: Optional[float] = None
    profit_percentage: Optional[float] = None
    project_name: Optional[str] = None
    save: bool = False


# ─── Conversion rules ────────────────────────────────────────────────────────

class ConversionRuleIn(BaseModel):
    rule_name: str
    material_pattern: str = Field(..., description="Regex or keyword against material name")
    unit_pattern: str = Field(..., description="Regex or keyword against market unit")
    conversion_factor: float = Field(..., ge=0.0001)
    base_unit: str
    conversion_description: Optional[str] = None
    material_type: Optional[str] = None
    job_category_pattern: Optional[str] = None
    conversion_data: Optional[Dict[str, Any]] = None
    priority: int = Field(100, ge=1, le=1000, description="Lower wins")
    is_active: bool = True
    notes: Optional[str] = None


class ConversionRuleUpdate(BaseModel):
    rule_name: Optional[str] = None
    material_pattern: Optional[str] = None
    unit_pattern: Optional[str] = None
    conversion_factor: Optional[float] = Field(None, ge=0.0001)
    base_unit: Optional[str] = None
    conversion_description: Optional[str] = None
    material_type: Optional[str] = None
    job_category_pattern: Optional[str] = None
    conversion_data: Optional[Dict[str, Any]] = None
    priority: Optional[int] = Field(None, ge=1, le=1000)
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class SuggestRequest(BaseModel):
    material_name: str
    unit: str
    job_type_name: Optional[str] = None
    include_builtin: bool = True


class RequirementsRequest(BaseModel):
    job_type_name: str


# ─── Materials ───────────────────────────────────────────────────────────────

class MaterialIn(BaseModel):
    name: str
    market_unit: str
    market_price: float = Field(..., ge=0)
    base_unit: Optional[str] = None
    conversion_factor: Optional[float] = None
    conversion_description: Optional[str] = None
    supplier: Optional[str] = None
    description: Optional[str] = None


class BrickConversionRequest(BaseModel):
    """Either a named ``preset`` or explicit brick dimensions in mm."""
    pieces: int = Field(..., description="Bricks per market package, e.g. 1000 per truk")
    preset: Optional[str] = Field(None, description="bata_merah, bata_putih, batako, bata_ringan")
    length_mm: Optional[float] = None
    width_mm: float = 0.0
    height_mm: Optional[float] = None
    mortar_mm: float = 10.0
    waste_factor: float = Field(0.0, description="Fraction, 0.05 = 5 %")
    wall_type: str = Field("single", description="single or double")
    market_unit: str = "truk"
