"""Index document model for beneficiary search.

Field names are snake_case in Python and serialized with the index's
camelCase names (``by_alias=True``).
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IndexDocument(BaseModel):
    """One beneficiary as stored in the search index."""

    model_config = ConfigDict(populate_by_name=True)

    # Identity
    ben_id: str = Field(alias="benId", min_length=1)
    ben_reg_id: int | None = Field(default=None, alias="benRegId")
    beneficiary_id: str | None = Field(default=None, alias="beneficiaryID")
    first_name: str | None = Field(default=None, alias="firstName")
    middle_name: str | None = Field(default=None, alias="middleName")
    last_name: str | None = Field(default=None, alias="lastName")
    father_name: str | None = Field(default=None, alias="fatherName")
    spouse_name: str | None = Field(default=None, alias="spouseName")

    # Demographics
    gender_id: int | None = Field(default=None, alias="genderID")
    gender_name: str | None = Field(default=None, alias="genderName")
    gender: str | None = None
    dob: datetime | None = Field(default=None, alias="dOB")
    age: int | None = None
    marital_status_id: int | None = Field(default=None, alias="maritalStatusID")
    marital_status_name: str | None = Field(default=None, alias="maritalStatusName")
    is_hiv_pos: str | None = Field(default=None, alias="isHIVPos")

    # Audit
    created_by: str | None = Field(default=None, alias="createdBy")
    created_date: datetime | None = Field(default=None, alias="createdDate")
    last_mod_date: int | None = Field(default=None, alias="lastModDate")
    ben_account_id: int | None = Field(default=None, alias="benAccountID")

    # Contact
    phone_num: str | None = Field(default=None, alias="phoneNum")
    alternate_phone_nums: list[str] | None = Field(default=None, alias="alternatePhoneNums")
    family_id: str | None = Field(default=None, alias="familyID")

    # Current address
    state_id: int | None = Field(default=None, alias="stateID")
    state_name: str | None = Field(default=None, alias="stateName")
    district_id: int | None = Field(default=None, alias="districtID")
    district_name: str | None = Field(default=None, alias="districtName")
    block_id: int | None = Field(default=None, alias="blockID")
    block_name: str | None = Field(default=None, alias="blockName")
    village_id: int | None = Field(default=None, alias="villageID")
    village_name: str | None = Field(default=None, alias="villageName")
    pin_code: str | None = Field(default=None, alias="pinCode")
    service_point_id: int | None = Field(default=None, alias="servicePointID")
    service_point_name: str | None = Field(default=None, alias="servicePointName")
    parking_place_id: int | None = Field(default=None, alias="parkingPlaceID")

    # Permanent address
    perm_state_id: int | None = Field(default=None, alias="permStateID")
    perm_state_name: str | None = Field(default=None, alias="permStateName")
    perm_district_id: int | None = Field(default=None, alias="permDistrictID")
    perm_district_name: str | None = Field(default=None, alias="permDistrictName")
    perm_block_id: int | None = Field(default=None, alias="permBlockID")
    perm_block_name: str | None = Field(default=None, alias="permBlockName")
    perm_village_id: int | None = Field(default=None, alias="permVillageID")
    perm_village_name: str | None = Field(default=None, alias="permVillageName")

    # Government IDs
    govt_identity_no: str | None = Field(default=None, alias="govtIdentityNo")
    aadhar_no: str | None = Field(default=None, alias="aadharNo")

    # Health-ID enrichment (best effort)
    health_id: str | None = Field(default=None, alias="healthID")
    abha_id: str | None = Field(default=None, alias="abhaID")
    abha_created_date: str | None = Field(default=None, alias="abhaCreatedDate")

    @property
    def document_id(self) -> str:
        return self.ben_id

    def to_source(self) -> dict[str, Any]:
        """Serialize to the JSON body written to the index."""
        return self.model_dump(by_alias=True, mode="json")
