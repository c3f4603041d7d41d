from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .risk import RiskLevel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ChangePasswordRequest(CamelModel):
    current_password: str = ""
    new_password: str = ""


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileResponse(BaseModel):
    success: bool = True
    profile: UserOut


class AvatarResponse(BaseModel):
    success: bool = True
    url: str
    path: str


class TextRequest(BaseModel):
    text: str = ""


class SummarizeRequest(CamelModel):
    text: str = ""
    summary_type: str = "general"


class CompareRequest(BaseModel):
    document1: str = ""
    document2: str = ""


class PlagiarismSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    score: float = 0.0
    matches: List[Dict[str, Any]] = []


class ForgerySection(BaseModel):
    model_config = ConfigDict(extra="allow")

    detected: bool = False
    confidence: float = 0.0
    areas: List[Any] = []
    techniques: List[Any] = []


class PrivacySection(BaseModel):
    model_config = ConfigDict(extra="allow")

    detected: bool = False
    entities: List[Dict[str, Any]] = []


class AnalysisResults(BaseModel):
    model_config = ConfigDict(extra="allow")

    plagiarism: Optional[PlagiarismSection] = None
    forgery: Optional[ForgerySection] = None
    privacy: Optional[PrivacySection] = None

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SaveReportRequest(CamelModel):
    file_name: str = ""
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    results: Optional[AnalysisResults] = None


class GenerateReportRequest(CamelModel):
    results: Optional[AnalysisResults] = None
    file_name: Optional[str] = None
    analysis_date: Optional[str] = None


class GenerateReportResponse(CamelModel):
    success: bool = True
    report_html: str
    report_id: str


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    file_name: str
    file_type: str
    file_size: int
    analysis_results: Dict[str, Any]
    plagiarism_score: float
    forgery_detected: bool
    privacy_issues_count: int
    risk_level: RiskLevel
    report_html: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class SaveReportResponse(CamelModel):
    success: bool = True
    report_id: int
    data: ReportOut


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ReportPage(BaseModel):
    reports: List[ReportOut]
    pagination: Pagination


class RecentReport(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    created_at: datetime
    risk_level: RiskLevel
    plagiarism_score: float


class StatsOut(CamelModel):
    total_analyses: int
    reports_generated: int
    issues_detected: int
    recent_activity: int
    avg_risk_level: RiskLevel
    recent: List[RecentReport]


class ShareSummary(CamelModel):
    file_name: str = "Document"
    originality_score: int
    plagiarism_score: int
    forgery_detected: bool
    privacy_issues: int
    timestamp: str


class ShareRequest(CamelModel):
    file_name: Optional[str] = None
    results: AnalysisResults


class ShareResponse(BaseModel):
    url: str
    data: str


class SharedResultOut(CamelModel):
    summary: ShareSummary
    risk_level: RiskLevel
