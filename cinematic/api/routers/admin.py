from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from cinematic.api.deps import get_admin_auth, get_site_registry
from cinematic.api.services.auth import AdminAuth
from cinematic.api.services.records import MirrorSite
from cinematic.api.services.sites import InvalidSiteKeyError, SiteNotFoundError, SiteRegistry

router = APIRouter(prefix="/api/admin")


class LoginIn(BaseModel):
    username: str | None = None
    password: str | None = None


class SiteIn(BaseModel):
    name: str | None = None
    domain: str | None = None


class SiteHeartbeatIn(BaseModel):
    online: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)


class SiteStatsIn(BaseModel):
    views: int = Field(default=0, ge=0)
    events: list[Any] | None = None


# ============================================================
# Dependencias de autenticación
# ============================================================


def require_admin(
    authorization: str | None = Header(None),
    auth: AdminAuth = Depends(get_admin_auth),
) -> dict[str, Any]:
    raw = (authorization or "").strip()
    token = raw[7:].strip() if raw.lower().startswith("bearer ") else ""
    payload = auth.verify(token)
    if payload is None:
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})
    return payload


def require_site(
    site_id: str,
    x_api_key: str | None = Header(None, alias="X-API-Key"),
    sites: SiteRegistry = Depends(get_site_registry),
) -> MirrorSite:
    try:
        return sites.authenticate(site_id, x_api_key)
    except InvalidSiteKeyError:
        raise HTTPException(status_code=401, detail="Invalid API key")


# ============================================================
# Login
# ============================================================


@router.post("/login")
def login(body: LoginIn = Body(...), auth: AdminAuth = Depends(get_admin_auth)) -> dict[str, Any]:
    token = auth.login(body.username, body.password)
    if token is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"success": True, "token": token}


@router.get("/check")
def check(admin: dict[str, Any] = Depends(require_admin)) -> dict[str, Any]:
    return {"success": True, "user": admin.get("user")}


# ============================================================
# Gestión de sitios
# ============================================================


@router.get("/sites")
def list_sites(
    _admin: dict[str, Any] = Depends(require_admin),
    sites: SiteRegistry = Depends(get_site_registry),
) -> dict[str, Any]:
    return {"success": True, "sites": sites.list_sites()}


@router.post("/sites")
def register_site(
    body: SiteIn = Body(...),
    _admin: dict[str, Any] = Depends(require_admin),
    sites: SiteRegistry = Depends(get_site_registry),
) -> dict[str, Any]:
    try:
        site = sites.register(body.name or "", body.domain or "")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "site": site}


@router.get("/sites/{site_id}")
def get_site(
    site_id: str,
    _admin: dict[str, Any] = Depends(require_admin),
    sites: SiteRegistry = Depends(get_site_registry),
) -> dict[str, Any]:
    try:
        return {"success": True, "site": sites.get(site_id)}
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")


@router.delete("/sites/{site_id}")
def delete_site(
    site_id: str,
    _admin: dict[str, Any] = Depends(require_admin),
    sites: SiteRegistry = Depends(get_site_registry),
) -> dict[str, Any]:
    try:
        sites.delete(site_id)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")
    return {"success": True}


# ============================================================
# API de espejos (X-API-Key)
# ============================================================


@router.post("/sites/{site_id}/heartbeat")
def site_heartbeat(
    site_id: str,
    body: SiteHeartbeatIn | None = Body(None),
    _site: MirrorSite = Depends(require_site),
    sites: SiteRegistry = Depends(get_site_registry),
) -> dict[str, Any]:
    data = body or SiteHeartbeatIn()
    try:
        sites.heartbeat(site_id, online=data.online, views=data.views)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")
    return {"success": True}


@router.post("/sites/{site_id}/stats")
def site_stats(
    site_id: str,
    body: SiteStatsIn | None = Body(None),
    _site: MirrorSite = Depends(require_site),
    sites: SiteRegistry = Depends(get_site_registry),
) -> dict[str, Any]:
    data = body or SiteStatsIn()
    try:
        sites.report_stats(site_id, views=data.views)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")
    return {"success": True}


# ============================================================
# Estadísticas globales
# ============================================================


@router.get("/stats")
def global_stats(
    _admin: dict[str, Any] = Depends(require_admin),
    sites: SiteRegistry = Depends(get_site_registry),
) -> dict[str, Any]:
    return {"success": True, "stats": sites.aggregate()}
