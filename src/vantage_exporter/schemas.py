from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


SUCCESS_STATUS = "Finished Successfully"
FAILED_STATUS = "Failed"


class VantageModel(BaseModel):
    """Base for records decoded from the Vantage public API."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # null means "not set" upstream, let the field default apply
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Skill(VantageModel):
    id: str = ""
    name: str = ""
    type: str = ""


class Parameter(VantageModel):
    is_read_only: bool = Field(False, alias="isReadOnly")
    key: str = ""
    value: str = ""


class Stage(VantageModel):
    type: str = ""
    name: str = ""


class Transaction(VantageModel):
    id: str = Field("", alias="transactionId")
    skill_id: str = Field("", alias="skillId")
    skill_version: int = Field(0, alias="skillVersion")
    status: str = ""
    create_time_utc: str = Field("", alias="createTimeUtc")
    completed_utc: str = Field("", alias="completedUtc")
    document_count: int = Field(0, alias="documentCount")
    page_count: int = Field(0, alias="pageCount")
    transaction_parameters: List[Parameter] = Field(
        default_factory=list, alias="transactionParameters"
    )
    file_parameters: List[Parameter] = Field(
        default_factory=list, alias="fileParameters"
    )
    error: str = ""
    stage: Stage = Field(default_factory=Stage)
    manual_review_operator_name: str = Field("", alias="manualReviewOperatorName")
    manual_review_operator_email: str = Field("", alias="manualReviewOperatorEmail")

    @property
    def in_manual_review(self) -> bool:
        return bool(self.manual_review_operator_name or self.manual_review_operator_email)


class TransactionPage(VantageModel):
    items: List[Transaction] = Field(default_factory=list)
    total_item_count: int = Field(0, alias="totalItemCount")


class ResultFile(VantageModel):
    file_id: str = Field("", alias="fileId")
    file_name: str = Field("", alias="fileName")
    type: str = ""


class BusinessRulesError(VantageModel):
    message: str = ""
    type: str = ""


class SourceFile(VantageModel):
    id: str = ""
    name: str = ""


class DocumentDetail(VantageModel):
    id: str = ""
    result_files: List[ResultFile] = Field(default_factory=list, alias="resultFiles")
    business_rules_errors: List[BusinessRulesError] = Field(
        default_factory=list, alias="businessRulesErrors"
    )


class TransactionDetail(VantageModel):
    id: str = ""
    status: str = ""
    documents: List[DocumentDetail] = Field(default_factory=list)
    source_files: List[SourceFile] = Field(default_factory=list, alias="sourceFiles")


class TransactionMetrics(BaseModel):
    """Per-skill statistics served by /transaction-details."""

    skill_id: str
    skill_name: str
    total_transactions: int = 0
    completed_success: int = 0
    completed_failed: int = 0
    active_processing: int = 0
    active_manual_review: int = 0
    avg_pages_per_transaction: float = 0.0
    avg_documents_per_transaction: float = 0.0
    business_rules_errors_total: int = 0
    stage_breakdown: Dict[str, int] = Field(default_factory=dict)
    status_breakdown: Dict[str, int] = Field(default_factory=dict)
    file_type_breakdown: Dict[str, int] = Field(default_factory=dict)


class SkillOption(BaseModel):
    value: str
    text: str
