import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import analysis, crud, models, schemas
from .auth import AuthProvider, get_auth_provider, get_current_user, oauth2_scheme
from .avatars import URL_PREFIX, store_avatar
from .db import Base, engine, get_db
from .export_utils import reports_to_csv, reports_to_pdf
from .llm import TextCompletion, get_completion, get_summary_completion
from .report import generate_report_id, render_report_html
from .risk import RiskLevel
from .settings import get_settings
from .share import InvalidShareLink, build_share_url, decode_share_data, encode_share_data, shared_risk, summary_from_results
from .store import InvalidQuery, PersistenceError, ReportQuery, ReportStore, get_report_store

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(settings.avatar_dir, exist_ok=True)
app.mount(URL_PREFIX, StaticFiles(directory=settings.avatar_dir), name="avatars")


def problem_response(
    request: Request, status_code: int, title: str, detail: str, headers: Optional[dict] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        media_type="application/problem+json",
        headers=headers,
        content={
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": detail,
            "instance": str(request.url.path),
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return problem_response(
        request=request,
        status_code=exc.status_code,
        title=str(exc.status_code),
        detail=detail,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return problem_response(
        request=request,
        status_code=status.HTTP_400_BAD_REQUEST,
        title="Validation error",
        detail=str(exc),
    )


@app.exception_handler(InvalidQuery)
async def invalid_query_handler(request: Request, exc: InvalidQuery):
    return problem_response(
        request=request,
        status_code=status.HTTP_400_BAD_REQUEST,
        title="Invalid query",
        detail=str(exc),
    )


@app.exception_handler(InvalidShareLink)
async def invalid_share_link_handler(request: Request, exc: InvalidShareLink):
    return problem_response(
        request=request,
        status_code=status.HTTP_400_BAD_REQUEST,
        title="Invalid Share Link",
        detail=str(exc),
    )


@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError):
    return problem_response(
        request=request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Database error",
        detail=str(exc),
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled database error on %s", request.url.path, exc_info=exc)
    return problem_response(
        request=request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Database error",
        detail=str(exc),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return problem_response(
        request=request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Internal Server Error",
        detail=str(exc),
    )


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; analysis results will be marked as failed")


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as exc:
        logger.warning("Database check failed: %s", exc)
        database_ok = False
    return {
        "status": "OK" if database_ok else "DEGRADED",
        "database": database_ok,
        "completionConfigured": bool(settings.gemini_api_key),
    }


# --- auth & profile ---


@app.post("/auth/register", response_model=schemas.TokenResponse)
def register(
    payload: schemas.RegisterRequest, auth: AuthProvider = Depends(get_auth_provider)
) -> schemas.TokenResponse:
    token = auth.register(payload.email, payload.password, payload.full_name)
    return schemas.TokenResponse(access_token=token)


@app.post("/auth/login", response_model=schemas.TokenResponse)
def login(
    payload: schemas.LoginRequest, auth: AuthProvider = Depends(get_auth_provider)
) -> schemas.TokenResponse:
    return schemas.TokenResponse(access_token=auth.sign_in(payload.email, payload.password))


@app.post("/auth/logout", response_model=schemas.MessageResponse)
def logout(
    token: Optional[str] = Depends(oauth2_scheme),
    auth: AuthProvider = Depends(get_auth_provider),
):
    auth.sign_out(token)
    return schemas.MessageResponse(message="Signed out")


@app.get("/auth/me", response_model=schemas.UserOut)
def me(current_user: models.User = Depends(get_current_user)) -> schemas.UserOut:
    return current_user


@app.post("/auth/change-password", response_model=schemas.MessageResponse)
def change_password(
    payload: schemas.ChangePasswordRequest,
    current_user: models.User = Depends(get_current_user),
    auth: AuthProvider = Depends(get_auth_provider),
):
    auth.change_password(current_user, payload.current_password, payload.new_password)
    return schemas.MessageResponse(message="Password updated successfully")


@app.put("/profile", response_model=schemas.ProfileResponse)
def update_profile(
    payload: schemas.ProfileUpdateRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    user = crud.update_profile(
        db, current_user, full_name=payload.full_name, avatar_url=payload.avatar_url
    )
    return schemas.ProfileResponse(profile=schemas.UserOut.model_validate(user))


@app.post("/profile", response_model=schemas.ProfileResponse)
def update_profile_form(
    full_name: Optional[str] = Form(default=None),
    avatar: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    avatar_url = None
    if avatar is not None and avatar.filename:
        avatar_url, _ = store_avatar(current_user.id, avatar)
    user = crud.update_profile(db, current_user, full_name=full_name, avatar_url=avatar_url)
    return schemas.ProfileResponse(profile=schemas.UserOut.model_validate(user))


@app.post("/profile/avatar", response_model=schemas.AvatarResponse)
def upload_avatar(
    file: Optional[UploadFile] = File(default=None),
    current_user: models.User = Depends(get_current_user),
):
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided"
        )
    url, path = store_avatar(current_user.id, file)
    return schemas.AvatarResponse(url=url, path=path)


# --- analysis ---


def _to_content(upload: UploadFile) -> analysis.UploadedContent:
    return analysis.UploadedContent(
        name=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        data=upload.file.read(),
    )


@app.post("/analyze", summary="Analyze uploaded files for plagiarism, forgery and PII")
def analyze(
    files: Optional[List[UploadFile]] = File(default=None),
    client: TextCompletion = Depends(get_completion),
):
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided"
        )
    return analysis.analyze_files(client, (_to_content(f) for f in files))


@app.post("/plagiarism")
def plagiarism(
    payload: schemas.TextRequest, client: TextCompletion = Depends(get_completion)
):
    if not payload.text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No text provided")
    return analysis.analyze_plagiarism(client, payload.text)


@app.post("/privacy")
def privacy(
    payload: schemas.TextRequest, client: TextCompletion = Depends(get_completion)
):
    if not payload.text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No text provided")
    return analysis.detect_privacy_issues(client, payload.text)


@app.post("/compare")
def compare(
    payload: schemas.CompareRequest, client: TextCompletion = Depends(get_completion)
):
    if not payload.document1.strip() or not payload.document2.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Two documents are required for comparison",
        )
    return analysis.compare_documents(client, payload.document1, payload.document2)


@app.post("/forgery")
def forgery(
    image: Optional[UploadFile] = File(default=None),
    client: TextCompletion = Depends(get_completion),
):
    if image is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image provided")
    content = _to_content(image)
    return analysis.detect_forgery(client, content.name, content.content_type, content.size)


@app.post("/summarize")
def summarize(
    payload: schemas.SummarizeRequest,
    client: TextCompletion = Depends(get_summary_completion),
):
    if not payload.text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No text provided")
    return analysis.summarize_text(client, payload.text, payload.summary_type)


@app.post("/generate-report", response_model=schemas.GenerateReportResponse)
def generate_report(payload: schemas.GenerateReportRequest):
    results = payload.results.as_dict() if payload.results else {}
    if not results:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No analysis results provided",
        )
    report_id = generate_report_id()
    html = render_report_html(
        results, payload.file_name, payload.analysis_date, report_id
    )
    return schemas.GenerateReportResponse(report_html=html, report_id=report_id)


# --- history ---


@app.post("/reports", response_model=schemas.SaveReportResponse)
def save_report(
    payload: schemas.SaveReportRequest,
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    results = payload.results.as_dict() if payload.results else {}
    if not payload.file_name or not results:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields"
        )
    report = store.insert(
        owner_id=current_user.id,
        file_name=payload.file_name,
        file_type=payload.file_type,
        file_size=payload.file_size,
        results=results,
    )
    return schemas.SaveReportResponse(
        report_id=report.id, data=schemas.ReportOut.model_validate(report)
    )


@app.get("/reports", response_model=schemas.ReportPage)
def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    risk_level: Optional[str] = Query(None, alias="riskLevel"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    search: Optional[str] = Query(None),
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    level = None
    if risk_level and risk_level.upper() != "ALL":
        try:
            level = RiskLevel(risk_level.upper())
        except ValueError:
            raise InvalidQuery(f"Unknown risk level '{risk_level}'") from None

    result = store.query_by_owner(
        current_user.id,
        ReportQuery(
            page=page,
            limit=limit,
            risk_level=level,
            sort_by=sort_by,
            sort_order=sort_order,
            search=search,
        ),
    )
    return schemas.ReportPage(
        reports=[schemas.ReportOut.model_validate(r) for r in result.reports],
        pagination=schemas.Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@app.get("/reports/export/csv")
def export_csv(
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    csv_text = reports_to_csv(store.all_for_owner(current_user.id))
    headers = {"Content-Disposition": 'attachment; filename="reports.csv"'}
    return Response(content=csv_text, media_type="text/csv", headers=headers)


@app.get("/reports/export/pdf")
def export_pdf(
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    pdf_bytes = reports_to_pdf(store.all_for_owner(current_user.id), settings.app_name)
    headers = {"Content-Disposition": 'attachment; filename="reports.pdf"'}
    return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)


def _owned_report(
    store: ReportStore, user: models.User, report_id: int
) -> models.AnalysisReport:
    report = store.get(user.id, report_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


@app.get("/reports/{report_id}", response_model=schemas.ReportOut)
def get_report(
    report_id: int,
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    return _owned_report(store, current_user, report_id)


@app.post("/reports/{report_id}/html", response_model=schemas.GenerateReportResponse)
def attach_report_html(
    report_id: int,
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    report = _owned_report(store, current_user, report_id)
    html_id = generate_report_id()
    html = render_report_html(
        report.analysis_results,
        report.file_name,
        (report.created_at or datetime.utcnow()).isoformat(),
        html_id,
    )
    store.attach_html(report, html)
    return schemas.GenerateReportResponse(report_html=html, report_id=html_id)


@app.get("/reports/{report_id}/html", response_class=HTMLResponse)
def download_report_html(
    report_id: int,
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    report = _owned_report(store, current_user, report_id)
    if not report.report_html:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No HTML report has been generated for this analysis",
        )
    created = (report.created_at or datetime.utcnow()).strftime("%Y-%m-%d")
    stem = os.path.splitext(os.path.basename(report.file_name))[0] or "Analysis"
    filename = f"NoLie_AI_Report_{stem}_{created}.html".replace('"', "")
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return HTMLResponse(content=report.report_html, headers=headers)


@app.get("/stats", response_model=schemas.StatsOut)
def stats(
    store: ReportStore = Depends(get_report_store),
    current_user: models.User = Depends(get_current_user),
):
    return schemas.StatsOut.model_validate(store.stats(current_user.id), from_attributes=True)


# --- sharing ---


@app.post("/share", response_model=schemas.ShareResponse)
def share(payload: schemas.ShareRequest):
    summary = summary_from_results(payload.results.as_dict(), payload.file_name)
    return schemas.ShareResponse(
        url=build_share_url(settings.public_base_url, summary),
        data=encode_share_data(summary),
    )


@app.get("/shared-results", response_model=schemas.SharedResultOut)
def shared_results(data: str = Query("")):
    summary = decode_share_data(data)
    return schemas.SharedResultOut(summary=summary, risk_level=shared_risk(summary))
