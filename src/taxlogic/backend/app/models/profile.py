"""Pydantic models describing the taxpayer profile accepted by the calculator."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProfileModel(BaseModel):
    """Frozen input model using camelCase keys on the wire."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _amount() -> Any:
    return Field(default=0.0, ge=0, allow_inf_nan=False)


class PersonalInfo(ProfileModel):
    has_disability: bool = False
    disability_degree: int | None = Field(default=None, ge=0, le=100)


class IncomeInfo(ProfileModel):
    """Employment income and the wage tax already withheld."""

    gross_income: float = _amount()
    withheld_tax: float = _amount()
    employer_count: int = Field(default=0, ge=0, le=50)
    has_self_employment: bool = False


class PendlerInfo(ProfileModel):
    """One-way commuting distance and the days it was travelled."""

    distance: float = _amount()
    days_per_year: int = Field(default=0, ge=0, le=366)
    public_transport_feasible: bool = False


class HomeOfficeInfo(ProfileModel):
    days: int = Field(default=0, ge=0, le=366)


class DeductionsInfo(ProfileModel):
    """Itemized claims as entered by the taxpayer, before any caps."""

    pendlerpauschale: PendlerInfo = Field(default_factory=PendlerInfo)
    home_office: HomeOfficeInfo = Field(default_factory=HomeOfficeInfo)
    work_equipment: float = _amount()
    education: float = _amount()
    church_tax: float = _amount()
    donations: float = _amount()
    medical_expenses: float = _amount()
    childcare_expenses: float = _amount()


class ChildInfo(ProfileModel):
    birth_date: date
    receiving_family_allowance: bool = False
    in_household: bool = False


class FamilyInfo(ProfileModel):
    single_earner: bool = False
    single_parent: bool = False
    children: tuple[ChildInfo, ...] = ()

    @property
    def child_count(self) -> int:
        return len(self.children)


class TaxProfile(ProfileModel):
    """Everything the calculator needs to know about one taxpayer and year."""

    tax_year: int = Field(ge=2000, le=2100)
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    income: IncomeInfo = Field(default_factory=IncomeInfo)
    deductions: DeductionsInfo = Field(default_factory=DeductionsInfo)
    family: FamilyInfo = Field(default_factory=FamilyInfo)


__all__ = [
    "ChildInfo",
    "DeductionsInfo",
    "FamilyInfo",
    "HomeOfficeInfo",
    "IncomeInfo",
    "PendlerInfo",
    "PersonalInfo",
    "ProfileModel",
    "TaxProfile",
]
