"""
HTTP API for the replication tracker.

This module defines the FastAPI application.  It wraps the model and
persistence helpers to expose study management endpoints and the
admin statistics report.  The server can be run directly via uvicorn
or programmatically by calling the ``run`` function defined below.

Endpoints:

* **GET /health** – Return a basic health status.

* **GET /admin/db_stats** – Per-model row counts and last-day
  activity.  Requires a bearer token belonging to an admin user.  On
  an unexpected failure the exception is forwarded to the error
  tracker and ``{"error": ...}`` is returned with status 500.

* **POST /articles** – Create an article.

* **POST /studies** – Create a study.  Validation failures return 422
  with an ``errors`` list of ``{field, message}`` objects.

* **GET /studies/{study_id}** – Serialise a study.  Boolean query
  parameters ``findings``, ``materials``, ``registrations``, ``links``,
  ``replications`` and ``replication_of`` attach related records.

* **POST /studies/{study_id}/effect_size** – Replace a study's effect
  size.

* **POST /studies/{study_id}/replications** – Record that another
  study replicates this one.

* **POST /studies/{study_id}/{kind}** – Attach a finding, material,
  registration or link.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import database as db
from .error_tracking import capture_exception
from .exceptions import InvalidEffectSizeError
from .models import Article, Finding, Link, Material, Registration, Study, User
from .parsers import parse_date
from .stats import get_db_stats

logger = logging.getLogger(__name__)

ARTIFACT_MODELS = {
    'findings': Finding,
    'materials': Material,
    'registrations': Registration,
    'links': Link,
}


class ArticleIn(BaseModel):
    title: Optional[str] = None
    doi: Optional[str] = None
    publication_date: Optional[str] = None
    abstract: Optional[str] = None


class EffectSizeIn(BaseModel):
    test_type: str
    value: float


class StudyIn(BaseModel):
    article_id: Optional[int] = None
    # Floats are accepted so that non-integral sample sizes reach model
    # validation and are reported like every other rule.
    n: Optional[Union[int, float]] = None
    power: Optional[float] = None
    dependent_variables: List[str] = Field(default_factory=list)
    independent_variables: List[str] = Field(default_factory=list)
    effect_size: Optional[EffectSizeIn] = None


class ReplicationIn(BaseModel):
    replicating_study_id: int
    closeness: int = 0


class ArtifactIn(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = None


# Create the FastAPI application
app = FastAPI(title="Replication Tracker API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event() -> None:
    """Initialise the database when the application starts."""
    db.init_db()
    logger.info("API server startup complete")


def _invalid(record: Any) -> JSONResponse:
    return JSONResponse(status_code=422, content={"errors": record.errors.as_list()})


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def require_admin(authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    """Admin gate: resolve the bearer token to an admin user.

    Missing or unknown tokens give 401; a valid token for a non-admin
    user gives 403.
    """
    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    with db.get_db() as session:
        user = session.query(User).filter(User.api_token == token).first()
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        if not user.admin:
            logger.warning(f"Non-admin user {user.id} attempted admin access")
            raise HTTPException(status_code=403, detail="Admin access required")
        return user.as_json()


@app.get("/health", response_model=Dict[str, Any])
async def health_check() -> Dict[str, Any]:
    """Return a basic health status."""
    return {
        "status": "healthy",
        "server": "ReplicationTracker",
    }


@app.get("/admin/db_stats")
async def db_stats(admin: Dict[str, Any] = Depends(require_admin)) -> Any:
    """Return per-model counts for the admin dashboard."""
    try:
        with db.get_db() as session:
            return get_db_stats(session)
    except Exception as e:
        logger.error(f"Error computing db stats: {e}")
        capture_exception(e)
        return JSONResponse(status_code=500, content={"error": str(e)})


@app.post("/articles", status_code=201)
async def create_article(payload: ArticleIn) -> Any:
    try:
        publication_date = parse_date(payload.publication_date)
    except ValueError:
        return JSONResponse(
            status_code=422,
            content={"errors": [{"field": "publication_date", "message": "is not a valid date"}]},
        )
    try:
        with db.get_db() as session:
            article = db.create(
                session,
                Article,
                title=payload.title,
                doi=payload.doi,
                publication_date=publication_date,
                abstract=payload.abstract,
            )
            if article.errors:
                return _invalid(article)
            return article.as_json()
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Create article error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/studies", status_code=201)
async def create_study(payload: StudyIn) -> Any:
    try:
        with db.get_db() as session:
            if payload.article_id is not None and db.get_record(session, Article, payload.article_id) is None:
                raise HTTPException(status_code=404, detail="Article not found")
            study = Study(
                article_id=payload.article_id,
                n=payload.n,
                power=payload.power,
                dependent_variables=list(payload.dependent_variables),
                independent_variables=list(payload.independent_variables),
            )
            if payload.effect_size is not None:
                study.set_effect_size(payload.effect_size.test_type, payload.effect_size.value)
            if not db.save(session, study):
                return _invalid(study)
            return study.as_json()
    except InvalidEffectSizeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Create study error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/studies/{study_id}")
async def fetch_study(
    study_id: int,
    findings: bool = False,
    materials: bool = False,
    registrations: bool = False,
    links: bool = False,
    replications: bool = False,
    replication_of: bool = False,
) -> Dict[str, Any]:
    """Retrieve a study, with related records attached on request."""
    try:
        with db.get_db() as session:
            study = db.get_record(session, Study, study_id)
            if study is None:
                raise HTTPException(status_code=404, detail="Study not found")
            return study.as_json(
                findings=findings,
                materials=materials,
                registrations=registrations,
                links=links,
                replications=replications,
                replication_of=replication_of,
            )
    except HTTPException:
        raise
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Fetch study error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/studies/{study_id}/effect_size")
async def set_effect_size(study_id: int, payload: EffectSizeIn) -> Dict[str, Any]:
    try:
        with db.get_db() as session:
            study = db.get_record(session, Study, study_id)
            if study is None:
                raise HTTPException(status_code=404, detail="Study not found")
            study.set_effect_size(payload.test_type, payload.value)
            db.save_or_raise(session, study)
            return study.as_json()
    except InvalidEffectSizeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Set effect size error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/studies/{study_id}/replications", status_code=201)
async def add_replication(study_id: int, payload: ReplicationIn) -> Dict[str, Any]:
    try:
        with db.get_db() as session:
            study = db.get_record(session, Study, study_id)
            replicating = db.get_record(session, Study, payload.replicating_study_id)
            if study is None or replicating is None:
                raise HTTPException(status_code=404, detail="Study not found")
            replication = study.add_replication(replicating, payload.closeness)
            logger.info(f"Study {replicating.id} recorded as replication of study {study.id}")
            return replication.as_json()
    except HTTPException:
        raise
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Add replication error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/studies/{study_id}/{kind}", status_code=201)
async def add_artifact(study_id: int, kind: str, payload: ArtifactIn) -> Any:
    """Attach a finding, material, registration or link to a study."""
    model = ARTIFACT_MODELS.get(kind)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Unknown collection: {kind}")
    try:
        with db.get_db() as session:
            study = db.get_record(session, Study, study_id)
            if study is None:
                raise HTTPException(status_code=404, detail="Study not found")
            attrs: Dict[str, Any] = {'study': study, 'name': payload.name, 'url': payload.url}
            if model is Link:
                attrs['type'] = payload.type
            record = db.create(session, model, **attrs)
            if record.errors:
                return _invalid(record)
            return record.as_json()
    except HTTPException:
        raise
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Add {kind} error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


def run(host: str = "0.0.0.0", port: int = 8001) -> None:
    """Run the API server using uvicorn.

    This helper wraps uvicorn to start the application.  It is
    intended for CLI use and test convenience.
    """
    import uvicorn  # type: ignore

    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(
        "replication_app.backend.api_server:app",
        host=host,
        port=port,
        log_level="info",
        reload=False,
    )
